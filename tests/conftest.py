"""
Pytest fixtures for the press ledger test suite.

Provides:
- A fresh in-memory SQLite database per test (StaticPool, one connection)
- Users, callers, inventory items and jobs
- A notification sink that records what the ledger sent
"""

import logging
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("PRESS_SECRET_KEY", "test-secret-key")

from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from press_core.app.db import build_engine, create_db_and_tables
from press_core.app import models, schemas
from press_core.app.services.identity import CallerIdentity
from press_core.app.services.job_service import JobService
from press_core.app.services.notifier import NotificationSink
from press_core.app.services.units import cost_per_sheet


class RecordingSink(NotificationSink):
    """Keeps every notification in memory"""

    def __init__(self):
        self.sent = []

    def notify(self, title, message, type, related_entity_id=None, priority="medium"):
        self.sent.append({
            "title": title,
            "message": message,
            "type": type,
            "related_entity_id": related_entity_id,
            "priority": priority,
        })

    def of_type(self, type_):
        return [n for n in self.sent if n["type"] == type_]


# =============================================================================
# Logging
# =============================================================================

@pytest.fixture(autouse=True)
def _propagate_app_logs():
    """setup_logging() detaches press_core from root; reattach so caplog sees it"""
    logger = logging.getLogger("press_core")
    previous = logger.propagate
    logger.propagate = True
    yield
    logger.propagate = previous


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def engine():
    eng = build_engine("sqlite://")
    create_db_and_tables(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def sink():
    return RecordingSink()


# =============================================================================
# People
# =============================================================================

def _user(db, username, role):
    user = models.User(
        full_name=username.title(),
        email=f"{username}@pressworks.ng",
        username=username,
        password_hash="x",
        role=role,
    )
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def admin_user(db):
    return _user(db, "admin", "admin")


@pytest.fixture
def worker_user(db):
    return _user(db, "ada", "worker")


@pytest.fixture
def other_worker_user(db):
    return _user(db, "grace", "worker")


@pytest.fixture
def admin(admin_user):
    return CallerIdentity.from_user(admin_user)


@pytest.fixture
def worker(worker_user):
    return CallerIdentity.from_user(worker_user)


@pytest.fixture
def other_worker(other_worker_user):
    return CallerIdentity.from_user(other_worker_user)


# =============================================================================
# Inventory and jobs
# =============================================================================

@pytest.fixture
def make_item(db):
    """Insert an inventory item directly with a given stock level (test setup only)"""
    def _make(name="A4 80gsm Bond", stock=5000, threshold=1000, unit_cost="5000.00",
              sheets_per_unit=500, category="paper", unit_of_measure="reams", **extra):
        unit_cost = Decimal(unit_cost)
        item = models.InventoryItem(
            material_name=name,
            category=category,
            unit_of_measure=unit_of_measure,
            paper_size=extra.pop("paper_size", "A4"),
            paper_type=extra.pop("paper_type", "Bond"),
            grammage=extra.pop("grammage", 80),
            sheets_per_unit=sheets_per_unit,
            current_stock_sheets=stock,
            threshold_sheets=threshold,
            unit_cost=unit_cost,
            cost_per_sheet=cost_per_sheet(unit_cost, sheets_per_unit),
            **extra,
        )
        db.add(item)
        db.flush()
        return item
    return _make


@pytest.fixture
def make_job(db, sink):
    def _make(caller, total_cost="10000.00", customer_name="Bisi Print Buyer", phone="08030000000", **extra):
        data = schemas.JobCreate(
            customer_name=customer_name,
            customer_phone=phone,
            total_cost=Decimal(total_cost),
            description=extra.pop("description", "500 flyers"),
            **extra,
        )
        return JobService.create_job(db, data, caller, notifier=sink)
    return _make


def line(material_name="A4 80gsm Bond", quantity=100, **kwargs):
    """Build a MaterialLineIn for tests"""
    return schemas.MaterialLineIn(material_name=material_name, quantity=quantity, **kwargs)


@pytest.fixture
def material_line():
    return line
