"""
Print Shop Ledger - Data Models
===============================
Jobs, payments, paper inventory and the audit trails that tie them together.

Key rules:
- Stock is held in sheets (integers); money in Numeric/Decimal
- InventoryItem.current_stock_sheets only changes through the stock ledger
- Job.amount_paid / balance / payment_status only change through the job ledger
- StockAdjustment, Payment and MaterialEditHistory are append-only
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Boolean,
    Numeric, Enum as SQLEnum, Index, CheckConstraint
)
from sqlalchemy.orm import relationship, validates
from .db import Base


def _enum(enum_cls):
    return SQLEnum(enum_cls, values_callable=lambda e: [m.value for m in e])


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, Enum):
    ADMIN = "admin"
    WORKER = "worker"


class JobStatus(str, Enum):
    """Job lifecycle; transitions only move forward"""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DELIVERED = "delivered"


JOB_STATUS_ORDER = [
    JobStatus.NOT_STARTED,
    JobStatus.IN_PROGRESS,
    JobStatus.COMPLETED,
    JobStatus.DELIVERED,
]


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    FULLY_PAID = "fully_paid"


class PaymentType(str, Enum):
    DEPOSIT = "deposit"
    INSTALLMENT = "installment"
    FULL_PAYMENT = "full_payment"
    BALANCE = "balance"


class PaymentMethod(str, Enum):
    CASH = "cash"
    TRANSFER = "transfer"
    POS = "pos"


class AdjustmentType(str, Enum):
    """Kinds of stock-level change recorded in stock_adjustments"""
    ADD = "add"
    REMOVE = "remove"
    SET = "set"
    CORRECTION = "correction"  # Driven by a material edit on a job


class UsageType(str, Enum):
    PRODUCTION = "production"
    WASTE = "waste"
    ADJUSTMENT = "adjustment"


class WasteType(str, Enum):
    PAPER_WASTE = "paper_waste"
    MATERIAL_WASTE = "material_waste"
    LABOR = "labor"
    OPERATIONAL = "operational"
    OTHER = "other"


# =============================================================================
# PEOPLE
# =============================================================================

class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    username = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default=UserRole.WORKER.value)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Customer(Base):
    __tablename__ = "customers"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=True, index=True)  # find-or-create key
    email = Column(String, unique=True, nullable=True, index=True)
    total_jobs_count = Column(Integer, nullable=False, default=0)
    total_amount_billed = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_amount_paid = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    first_interaction_date = Column(DateTime, default=datetime.utcnow)
    last_interaction_date = Column(DateTime, default=datetime.utcnow)
    jobs = relationship("Job", back_populates="customer")


# =============================================================================
# INVENTORY
# =============================================================================

class InventoryItem(Base):
    """
    A stocked material. Paper is counted in sheets; unit_cost is the price per
    unit_of_measure (usually a ream of sheets_per_unit sheets).
    """
    __tablename__ = "inventory"

    id = Column(Integer, primary_key=True, index=True)
    material_name = Column(String(200), nullable=False, index=True)
    category = Column(String(50), nullable=False, default="paper")
    unit_of_measure = Column(String(30), nullable=False, default="reams")
    paper_size = Column(String(30), nullable=True)
    paper_type = Column(String(50), nullable=True)
    grammage = Column(Integer, nullable=True)
    supplier = Column(String(200), nullable=True)

    sheets_per_unit = Column(Integer, nullable=False, default=500)
    current_stock_sheets = Column(Integer, nullable=False, default=0)
    threshold_sheets = Column(Integer, nullable=False, default=0)

    unit_cost = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    cost_per_sheet = Column(Numeric(12, 4), nullable=False, default=Decimal("0.0000"))

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    adjustments = relationship("StockAdjustment", back_populates="material")
    usages = relationship("MaterialUsage", back_populates="material")

    __table_args__ = (
        CheckConstraint("current_stock_sheets >= 0", name="ck_inventory_stock_non_negative"),
        CheckConstraint("sheets_per_unit > 0", name="ck_inventory_sheets_per_unit_positive"),
    )

    @validates("current_stock_sheets")
    def validate_stock(self, key, value):
        """Prevent negative stock"""
        if value is not None and value < 0:
            raise ValueError("Stock cannot be negative")
        return value

    @validates("sheets_per_unit")
    def validate_sheets_per_unit(self, key, value):
        if value is not None and value <= 0:
            raise ValueError("sheets_per_unit must be positive")
        return value


class StockAdjustment(Base):
    """
    Append-only record of every stock-level change that is not a direct job
    consumption: replenishment, manual add/remove/set, and edit corrections.
    """
    __tablename__ = "stock_adjustments"

    id = Column(Integer, primary_key=True, index=True)
    material_id = Column(Integer, ForeignKey("inventory.id"), nullable=False, index=True)
    adjustment_type = Column(_enum(AdjustmentType), nullable=False)
    sheets_change = Column(Integer, nullable=False)  # signed
    stock_before = Column(Integer, nullable=False)
    stock_after = Column(Integer, nullable=False)
    reason = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=True)
    adjusted_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    adjusted_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    material = relationship("InventoryItem", back_populates="adjustments")


# =============================================================================
# JOBS
# =============================================================================

class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(String(40), unique=True, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    worker_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    description = Column(Text, nullable=True)

    total_cost = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    amount_paid = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    balance = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    payment_status = Column(_enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)

    status = Column(_enum(JobStatus), nullable=False, default=JobStatus.NOT_STARTED)
    mode_of_payment = Column(String(30), nullable=True)
    date_requested = Column(DateTime, default=datetime.utcnow)
    delivery_deadline = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer", back_populates="jobs")
    materials = relationship("MaterialUsage", back_populates="job", order_by="MaterialUsage.id")
    payments = relationship("Payment", back_populates="job", order_by="Payment.id")
    waste = relationship("WasteExpense", back_populates="job", order_by="WasteExpense.id")


class MaterialUsage(Base):
    """
    Journal of material consumed by a job. quantity_sheets is what was
    actually taken from stock; sheets_short is the unmet remainder.
    Changed only through the material edit auditor.
    """
    __tablename__ = "material_usage"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey("inventory.id"), nullable=True, index=True)

    material_name = Column(String(200), nullable=False)
    paper_size = Column(String(30), nullable=True)
    paper_type = Column(String(50), nullable=True)
    grammage = Column(Integer, nullable=True)

    quantity_sheets = Column(Integer, nullable=False, default=0)
    sheets_short = Column(Integer, nullable=False, default=0)
    unit_cost = Column(Numeric(12, 4), nullable=False, default=Decimal("0.0000"))
    total_cost = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    usage_type = Column(_enum(UsageType), nullable=False, default=UsageType.PRODUCTION)
    inventory_updated = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    recorded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    recorded_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    job = relationship("Job", back_populates="materials")
    material = relationship("InventoryItem", back_populates="usages")

    __table_args__ = (
        Index("idx_usage_job_material", "job_id", "material_id"),
    )


class MaterialEditHistory(Base):
    """
    Before/after snapshot for every post-hoc material change on a job.

    All previous_* null: the line was added. All new_* null: the line was
    deleted. material_usage_id is a plain integer so the history outlives
    the usage row.

    stock_delta_sheets is the signed stock change on material_id (the item
    the line is linked to after the edit). When the edit re-links the line,
    previous_material_id names the old item and returned_sheets what went
    back to it.
    """
    __tablename__ = "material_edit_history"

    id = Column(Integer, primary_key=True, index=True)
    material_usage_id = Column(Integer, nullable=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    material_id = Column(Integer, nullable=True)
    previous_material_id = Column(Integer, nullable=True)

    previous_material_name = Column(String(200), nullable=True)
    previous_paper_size = Column(String(30), nullable=True)
    previous_paper_type = Column(String(50), nullable=True)
    previous_grammage = Column(Integer, nullable=True)
    previous_quantity = Column(Integer, nullable=True)
    previous_unit_cost = Column(Numeric(12, 4), nullable=True)
    previous_total_cost = Column(Numeric(12, 2), nullable=True)

    new_material_name = Column(String(200), nullable=True)
    new_paper_size = Column(String(30), nullable=True)
    new_paper_type = Column(String(50), nullable=True)
    new_grammage = Column(Integer, nullable=True)
    new_quantity = Column(Integer, nullable=True)
    new_unit_cost = Column(Numeric(12, 4), nullable=True)
    new_total_cost = Column(Numeric(12, 2), nullable=True)

    stock_delta_sheets = Column(Integer, nullable=False, default=0)
    returned_sheets = Column(Integer, nullable=False, default=0)
    edit_reason = Column(Text, nullable=False)
    edited_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    edited_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_type = Column(_enum(PaymentType), nullable=False)
    payment_method = Column(_enum(PaymentMethod), nullable=False)
    receipt_number = Column(String(40), unique=True, nullable=False)
    notes = Column(Text, nullable=True)
    recorded_by = Column(String(200), nullable=True)
    recorded_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    date = Column(DateTime, default=datetime.utcnow, nullable=False)

    job = relationship("Job", back_populates="payments")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
    )


class WasteExpense(Base):
    __tablename__ = "waste_expenses"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey("inventory.id"), nullable=True)
    type = Column(_enum(WasteType), nullable=False, default=WasteType.OTHER)
    description = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False, default=0)
    unit_cost = Column(Numeric(12, 4), nullable=False, default=Decimal("0.0000"))
    total_cost = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    waste_reason = Column(Text, nullable=True)
    inventory_updated = Column(Boolean, nullable=False, default=False)
    recorded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    job = relationship("Job", back_populates="waste")


# =============================================================================
# NOTIFICATIONS
# =============================================================================

class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    role = Column(String, nullable=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False)
    related_entity_id = Column(Integer, nullable=True)
    priority = Column(String(20), nullable=False, default="medium")
    read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
