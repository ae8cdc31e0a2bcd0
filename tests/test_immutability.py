from decimal import Decimal

import pytest

from press_core.app.models import MaterialEditHistory, Payment, StockAdjustment
from press_core.app.services.edit_auditor import MaterialEditAuditor
from press_core.app.services.errors import ImmutableRecordError
from press_core.app.services.job_ledger import JobLedger
from press_core.app.services.stock_ledger import StockLedger


@pytest.fixture
def payment(db, admin, make_job, sink):
    job = make_job(admin)
    return JobLedger.record_payment(db, job.id, Decimal("100"), "deposit", "pos", admin, notifier=sink)


@pytest.fixture
def adjustment(db, admin, make_item, sink):
    item = make_item(stock=10, threshold=0)
    return StockLedger.adjust(db, item.id, "set", 20, admin, reason="Recount", notifier=sink)


@pytest.fixture
def history_row(db, worker, make_job, sink, material_line):
    job = make_job(worker)
    outcome = MaterialEditAuditor.apply_edits(
        db, job.id, [material_line(material_name="Lamination film", quantity=2, unit_cost=Decimal("300"))],
        "Added lamination", worker, notifier=sink,
    )
    return outcome.history[0]


def test_payment_cannot_be_changed(db, payment):
    payment.amount = Decimal("1")
    with pytest.raises(ImmutableRecordError) as exc:
        db.flush()
    assert exc.value.entity_type == "Payment"


def test_payment_cannot_be_deleted(db, payment):
    db.delete(payment)
    with pytest.raises(ImmutableRecordError):
        db.flush()


def test_adjustment_cannot_be_changed(db, adjustment):
    adjustment.sheets_change = 0
    with pytest.raises(ImmutableRecordError):
        db.flush()


def test_edit_history_cannot_be_deleted(db, history_row):
    db.flush()
    db.delete(history_row)
    with pytest.raises(ImmutableRecordError) as exc:
        db.flush()
    assert exc.value.operation == "DELETE"


def test_new_rows_are_still_written(db, payment, adjustment, history_row):
    db.flush()
    assert db.query(Payment).count() == 1
    assert db.query(StockAdjustment).count() == 1
    assert db.query(MaterialEditHistory).count() == 1
