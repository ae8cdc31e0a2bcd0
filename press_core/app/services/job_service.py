"""
Job lifecycle: creation, forward-only status transitions with the material
and waste recorded at each step, and job reads.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import schemas
from ..logging_config import get_logger
from ..models import (
    Job, Customer, WasteExpense, MaterialEditHistory, JobStatus, JOB_STATUS_ORDER,
    PaymentStatus, UsageType, WasteType, InventoryItem,
)
from .alerts import payment_status as derive_payment_status
from .errors import (
    LedgerValidationError, NotFoundError, InvalidTransitionError, DuplicateRecordError,
)
from .identity import CallerIdentity, ensure_job_access
from .job_ledger import JobLedger
from .notifier import NotificationSink, DatabaseNotificationSink
from .units import quantize_money, line_cost
from .usage_journal import MaterialUsageJournal

logger = get_logger(__name__)


def _sink(db, notifier):
    return notifier if notifier is not None else DatabaseNotificationSink(db)


def _lock_job(db: Session, job_id: int) -> Job:
    job = db.query(Job).filter(Job.id == job_id).with_for_update().first()
    if not job:
        raise NotFoundError(f"Job {job_id} not found")
    return job


class JobService:

    # -------------------------------------------------------------------------
    # Customers
    # -------------------------------------------------------------------------

    @staticmethod
    def resolve_customer(db: Session, data: schemas.JobCreate) -> Customer:
        """Explicit id, then phone number, else create a new customer."""
        if data.customer_id is not None:
            customer = db.query(Customer).filter(Customer.id == data.customer_id).with_for_update().first()
            if not customer:
                raise NotFoundError(f"Customer {data.customer_id} not found")
            return customer

        if data.customer_phone:
            customer = (
                db.query(Customer).filter(Customer.phone == data.customer_phone).with_for_update().first()
            )
            if customer:
                return customer

        if not data.customer_name or not data.customer_name.strip():
            raise LedgerValidationError("Customer name is required for a new customer")

        customer = Customer(
            name=data.customer_name.strip(),
            phone=data.customer_phone,
            email=data.customer_email,
        )
        try:
            with db.begin_nested():
                db.add(customer)
        except IntegrityError as e:
            code = getattr(e.orig, "pgcode", None) or "unique_violation"
            raise DuplicateRecordError(code, f"Customer could not be created: {e.orig}") from e
        logger.info("Created customer %s (%s)", customer.id, customer.name)
        return customer

    # -------------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------------

    @staticmethod
    def create_job(
        db: Session,
        data: schemas.JobCreate,
        caller: CallerIdentity,
        notifier: Optional[NotificationSink] = None,
    ) -> Job:
        if data.total_cost is None or data.total_cost < 0:
            raise LedgerValidationError("Total cost cannot be negative")

        customer = JobService.resolve_customer(db, data)
        total = quantize_money(data.total_cost)

        worker_id = caller.user_id
        if data.worker_id is not None and caller.is_admin:
            worker_id = data.worker_id

        job = Job(
            ticket_id=JobLedger.new_ticket_id(db),
            customer_id=customer.id,
            worker_id=worker_id,
            description=data.description,
            total_cost=total,
            amount_paid=Decimal("0.00"),
            balance=total,
            payment_status=derive_payment_status(total, 0),
            status=JobStatus.NOT_STARTED,
            mode_of_payment=data.mode_of_payment,
            delivery_deadline=data.delivery_deadline,
        )
        db.add(job)

        customer.total_jobs_count = (customer.total_jobs_count or 0) + 1
        customer.total_amount_billed = quantize_money(Decimal(str(customer.total_amount_billed or 0)) + total)
        customer.last_interaction_date = datetime.utcnow()
        db.flush()

        _sink(db, notifier).notify(
            title="New Job Created",
            message=f"New job {job.ticket_id} created by {caller.name or caller.user_id} for {customer.name}",
            type="new_job",
            related_entity_id=job.id,
            priority="medium",
        )
        logger.info("Created job %s for customer %s (total %s)", job.ticket_id, customer.id, total)
        return job

    @staticmethod
    def update_status(
        db: Session,
        job_id: int,
        new_status: JobStatus,
        caller: CallerIdentity,
        materials=(),
        waste=(),
        allow_fuzzy_match: bool = False,
        notifier: Optional[NotificationSink] = None,
    ) -> Job:
        """
        Move a job forward (or keep its status) and record the materials and
        waste supplied with the change, all in the caller's transaction.
        """
        new_status = JobStatus(new_status)
        materials = list(materials or ())
        waste = list(waste or ())
        for line in materials:
            if line.quantity is None or line.quantity <= 0:
                raise LedgerValidationError(f"Quantity for {line.material_name!r} must be positive")

        job = _lock_job(db, job_id)
        ensure_job_access(job, caller)

        old_status = JobStatus(job.status)
        if JOB_STATUS_ORDER.index(new_status) < JOB_STATUS_ORDER.index(old_status):
            raise InvalidTransitionError(
                f"Job {job.ticket_id} cannot move from {old_status.value} back to {new_status.value}"
            )

        sink = _sink(db, notifier)
        for line in materials:
            MaterialUsageJournal.record(
                db, job.id, caller, line, allow_fuzzy_match=allow_fuzzy_match, notifier=sink,
            )
        for entry in waste:
            JobService._record_waste(db, job, entry, caller, sink)

        job.status = new_status
        job.updated_at = datetime.utcnow()
        db.flush()

        if new_status != old_status:
            sink.notify(
                title="Job Status Updated",
                message=(
                    f"Job {job.ticket_id} status changed from {old_status.value} to "
                    f"{new_status.value} by {caller.name or caller.user_id}"
                ),
                type="status_change",
                related_entity_id=job.id,
                priority="medium",
            )
            logger.info("Job %s: %s -> %s", job.ticket_id, old_status.value, new_status.value)
        return job

    @staticmethod
    def _record_waste(db: Session, job: Job, entry, caller: CallerIdentity, sink) -> WasteExpense:
        quantity = entry.quantity or 0
        unit_cost = Decimal(str(entry.unit_cost or 0))
        inventory_updated = False

        if entry.material_id is not None and entry.update_inventory and quantity > 0:
            item = db.query(InventoryItem).filter(InventoryItem.id == entry.material_id).first()
            if not item:
                raise NotFoundError(f"Inventory item {entry.material_id} not found")
            usage, _ = MaterialUsageJournal.record(
                db, job.id, caller,
                schemas.MaterialLineIn(
                    material_id=item.id,
                    material_name=item.material_name,
                    quantity=quantity,
                    usage_type=UsageType.WASTE,
                    notes=entry.waste_reason or entry.description,
                    update_inventory=True,
                ),
                notifier=sink,
            )
            quantity = usage.quantity_sheets
            unit_cost = Decimal(str(usage.unit_cost))
            inventory_updated = True

        total = entry.total_cost if entry.total_cost is not None else line_cost(quantity, unit_cost)
        expense = WasteExpense(
            job_id=job.id,
            material_id=entry.material_id,
            type=WasteType(entry.type),
            description=entry.description,
            quantity=quantity,
            unit_cost=unit_cost,
            total_cost=quantize_money(total),
            waste_reason=entry.waste_reason,
            inventory_updated=inventory_updated,
            recorded_by=caller.user_id,
        )
        db.add(expense)
        db.flush()
        return expense

    @staticmethod
    def update_job(db: Session, job_id: int, data: schemas.JobUpdate, caller: CallerIdentity) -> Job:
        job = _lock_job(db, job_id)
        ensure_job_access(job, caller)

        if data.description is not None:
            job.description = data.description
        if data.mode_of_payment is not None:
            job.mode_of_payment = data.mode_of_payment
        if data.delivery_deadline is not None:
            job.delivery_deadline = data.delivery_deadline
        if data.total_cost is not None and quantize_money(data.total_cost) != quantize_money(job.total_cost):
            JobLedger.edit_total_cost(db, job.id, data.total_cost, caller)

        job.updated_at = datetime.utcnow()
        db.flush()
        return job

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @staticmethod
    def get_job(db: Session, job_id: int, caller: CallerIdentity) -> Job:
        job = db.query(Job).filter(Job.id == job_id).first()
        if not job:
            raise NotFoundError(f"Job {job_id} not found")
        ensure_job_access(job, caller)
        return job

    @staticmethod
    def get_by_ticket(db: Session, ticket_id: str, caller: CallerIdentity) -> Job:
        job = db.query(Job).filter(Job.ticket_id == ticket_id).first()
        if not job:
            raise NotFoundError(f"Job {ticket_id} not found")
        ensure_job_access(job, caller)
        return job

    @staticmethod
    def list_jobs(
        db: Session,
        caller: CallerIdentity,
        status: Optional[JobStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Job]:
        query = db.query(Job)
        if not caller.is_admin:
            query = query.filter(Job.worker_id == caller.user_id)
        if status is not None:
            query = query.filter(Job.status == status)
        if payment_status is not None:
            query = query.filter(Job.payment_status == payment_status)
        return query.order_by(Job.created_at.desc(), Job.id.desc()).offset(offset).limit(limit).all()

    @staticmethod
    def edit_history(db: Session, job_id: int, caller: CallerIdentity) -> List[MaterialEditHistory]:
        JobService.get_job(db, job_id, caller)
        return db.query(MaterialEditHistory).filter(
            MaterialEditHistory.job_id == job_id
        ).order_by(MaterialEditHistory.edited_at, MaterialEditHistory.id).all()

    @staticmethod
    def get_job_detail(db: Session, job_id: int, caller: CallerIdentity) -> dict:
        job = JobService.get_job(db, job_id, caller)
        detail = schemas.JobOut.model_validate(job).model_dump()
        detail.update(
            customer_name=job.customer.name if job.customer else None,
            materials=job.materials,
            waste=job.waste,
            payments=job.payments,
            edit_history=JobService.edit_history(db, job_id, caller),
        )
        return detail
