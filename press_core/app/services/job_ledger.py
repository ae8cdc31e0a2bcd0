"""
Job Ledger
==========
Owns a job's money: total_cost, amount_paid, balance and payment_status.

Invariant after every payment insert and every total_cost edit:
    balance == total_cost - sum(payments.amount)
"""

import secrets
import string
import time
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..logging_config import get_logger
from ..models import Job, Payment, Customer, PaymentType, PaymentMethod
from .alerts import payment_status
from .errors import (
    LedgerValidationError, NotFoundError, PaymentExceedsBalanceError, DuplicateRecordError,
)
from .identity import CallerIdentity, ensure_job_access
from .notifier import NotificationSink, DatabaseNotificationSink
from .units import quantize_money

logger = get_logger(__name__)

_BASE36_UPPER = string.digits + string.ascii_uppercase
MAX_ID_ATTEMPTS = 5


# =============================================================================
# TICKET / RECEIPT NUMBERS
# =============================================================================

def _business_id(prefix: str) -> str:
    """<PREFIX>-<unix millis>-<4 random base36 chars>"""
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36_UPPER) for _ in range(4))
    return f"{prefix}-{millis}-{suffix}"


def generate_ticket_id() -> str:
    return _business_id("PRESS")


def generate_receipt_number() -> str:
    return _business_id("RCP")


def _unique_id(db: Session, generator: Callable[[], str], column, code: str) -> str:
    for _ in range(MAX_ID_ATTEMPTS):
        candidate = generator()
        if not db.query(column).filter(column == candidate).first():
            return candidate
    raise DuplicateRecordError(code, f"Could not generate a unique {code} after {MAX_ID_ATTEMPTS} attempts")


def _lock_job(db: Session, job_id: int) -> Job:
    job = db.query(Job).filter(Job.id == job_id).with_for_update().first()
    if not job:
        raise NotFoundError(f"Job {job_id} not found")
    return job


def _money(value) -> str:
    return f"₦{quantize_money(value):,}"


class JobLedger:

    @staticmethod
    def new_ticket_id(db: Session) -> str:
        return _unique_id(db, generate_ticket_id, Job.ticket_id, "ticket_id")

    @staticmethod
    def new_receipt_number(db: Session) -> str:
        return _unique_id(db, generate_receipt_number, Payment.receipt_number, "receipt_number")

    @staticmethod
    def recompute_balance(db: Session, job_id: int) -> Job:
        """
        Re-derive amount_paid, balance and payment_status from the payments
        table. Idempotent.
        """
        job = _lock_job(db, job_id)
        paid = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
            Payment.job_id == job.id
        ).scalar()

        job.amount_paid = quantize_money(paid)
        job.balance = quantize_money(Decimal(str(job.total_cost)) - job.amount_paid)
        job.payment_status = payment_status(job.total_cost, job.amount_paid)
        db.flush()
        return job

    @staticmethod
    def record_payment(
        db: Session,
        job_id: int,
        amount,
        payment_type: PaymentType,
        payment_method: PaymentMethod,
        caller: CallerIdentity,
        notes: Optional[str] = None,
        notifier: Optional[NotificationSink] = None,
    ) -> Payment:
        """
        Insert a payment against a job and bring the job and its customer's
        lifetime totals up to date in the same transaction.
        """
        if amount is None or Decimal(str(amount)) <= 0:
            raise LedgerValidationError("Amount must be greater than 0")
        amount = quantize_money(amount)

        job = JobLedger.recompute_balance(db, job_id)
        if amount > job.balance:
            raise PaymentExceedsBalanceError(amount, job.balance)

        payment = Payment(
            job_id=job.id,
            amount=amount,
            payment_type=PaymentType(payment_type),
            payment_method=PaymentMethod(payment_method),
            receipt_number=JobLedger.new_receipt_number(db),
            notes=notes,
            recorded_by=caller.name,
            recorded_by_id=caller.user_id,
        )
        db.add(payment)
        db.flush()

        JobLedger.recompute_balance(db, job.id)
        job.updated_at = datetime.utcnow()

        customer = db.query(Customer).filter(Customer.id == job.customer_id).with_for_update().first()
        if customer:
            customer.total_amount_paid = quantize_money(Decimal(str(customer.total_amount_paid or 0)) + amount)
            customer.last_interaction_date = datetime.utcnow()
        db.flush()

        sink = notifier if notifier is not None else DatabaseNotificationSink(db)
        sink.notify(
            title="Payment Received",
            message=(
                f"Payment of {_money(amount)} recorded for job {job.ticket_id} "
                f"by {caller.name or caller.user_id}. Balance: {_money(job.balance)}"
            ),
            type="payment_update",
            related_entity_id=payment.id,
            priority="medium",
        )

        logger.info(
            "Payment %s of %s on job %s; balance %s (%s)",
            payment.receipt_number, amount, job.ticket_id, job.balance, job.payment_status.value,
        )
        return payment

    @staticmethod
    def edit_total_cost(db: Session, job_id: int, new_total_cost, caller: CallerIdentity) -> Job:
        """
        Change the quoted price while keeping what has already been paid:
        amount_paid = old_total - old_balance, new_balance = new_total - amount_paid.
        """
        if new_total_cost is None or Decimal(str(new_total_cost)) < 0:
            raise LedgerValidationError("Total cost cannot be negative")
        new_total = quantize_money(new_total_cost)

        job = _lock_job(db, job_id)
        old_total = Decimal(str(job.total_cost))
        amount_paid = old_total - Decimal(str(job.balance))

        job.total_cost = new_total
        job.amount_paid = quantize_money(amount_paid)
        job.balance = quantize_money(new_total - amount_paid)
        job.payment_status = payment_status(new_total, amount_paid)
        job.updated_at = datetime.utcnow()

        difference = new_total - old_total
        if difference:
            customer = db.query(Customer).filter(Customer.id == job.customer_id).with_for_update().first()
            if customer:
                customer.total_amount_billed = quantize_money(
                    Decimal(str(customer.total_amount_billed or 0)) + difference
                )
        db.flush()

        logger.info(
            "Job %s total cost %s -> %s by user %s; balance %s",
            job.ticket_id, old_total, new_total, caller.user_id, job.balance,
        )
        return job

    @staticmethod
    def payments_for_job(db: Session, job_id: int):
        if not db.query(Job.id).filter(Job.id == job_id).first():
            raise NotFoundError(f"Job {job_id} not found")
        return db.query(Payment).filter(Payment.job_id == job_id).order_by(Payment.date, Payment.id).all()

    @staticmethod
    def list_payments(
        db: Session,
        job_id: Optional[int] = None,
        payment_type: Optional[PaymentType] = None,
        payment_method: Optional[PaymentMethod] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        caller: Optional[CallerIdentity] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> dict:
        """
        Newest payments first, each with its job's ticket and customer name.
        `total` and `total_amount` cover every matching payment, not just
        the returned page. Workers only see payments on their own jobs.
        """
        query = db.query(Payment).join(Job, Payment.job_id == Job.id)
        if caller is not None and not caller.is_admin:
            query = query.filter(Job.worker_id == caller.user_id)
        if job_id is not None:
            query = query.filter(Payment.job_id == job_id)
        if payment_type is not None:
            query = query.filter(Payment.payment_type == PaymentType(payment_type))
        if payment_method is not None:
            query = query.filter(Payment.payment_method == PaymentMethod(payment_method))
        if start_date is not None:
            query = query.filter(Payment.date >= start_date)
        if end_date is not None:
            query = query.filter(Payment.date <= end_date)

        total = query.count()
        total_amount = query.with_entities(func.coalesce(func.sum(Payment.amount), 0)).scalar()
        page = query.order_by(Payment.date.desc(), Payment.id.desc()).offset(offset).limit(limit).all()

        rows = []
        for payment in page:
            job = payment.job
            rows.append({
                "payment": payment,
                "ticket_id": job.ticket_id,
                "customer_name": job.customer.name if job.customer else None,
            })
        return {"payments": rows, "total": total, "total_amount": quantize_money(total_amount)}

    @staticmethod
    def receipt(db: Session, ref: str, caller: Optional[CallerIdentity] = None) -> dict:
        """
        Everything a printed receipt needs. `ref` is a payment id when it
        is all digits, otherwise a receipt number.
        """
        ref = str(ref).strip()
        query = db.query(Payment)
        if ref.isdigit():
            payment = query.filter(Payment.id == int(ref)).first()
        else:
            payment = query.filter(Payment.receipt_number == ref).first()
        if not payment:
            raise NotFoundError(f"Payment {ref} not found")

        job = payment.job
        if caller is not None:
            ensure_job_access(job, caller)
        customer = job.customer
        return {
            "payment": payment,
            "ticket_id": job.ticket_id,
            "description": job.description,
            "total_cost": job.total_cost,
            "amount_paid": job.amount_paid,
            "balance": job.balance,
            "date_requested": job.date_requested,
            "delivery_deadline": job.delivery_deadline,
            "customer_name": customer.name if customer else None,
            "customer_phone": customer.phone if customer else None,
            "customer_email": customer.email if customer else None,
            "payment_history": JobLedger.payments_for_job(db, job.id),
        }
