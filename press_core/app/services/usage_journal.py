"""
Material usage journal: what each job consumed, at what cost.

A line linked to an inventory item is costed at the item's cost_per_sheet
and, when update_inventory is set, deducted through StockLedger. Lines with
no inventory match are still recorded at the caller's unit cost so one-off
materials can be billed without touching stock.
"""

from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..logging_config import get_logger
from ..models import InventoryItem, MaterialUsage, UsageType
from .errors import LedgerValidationError, NotFoundError
from .identity import CallerIdentity
from .notifier import NotificationSink
from .stock_ledger import StockLedger, ConsumeResult
from .units import line_cost

logger = get_logger(__name__)

AUDITED_FIELDS = (
    "material_name", "paper_size", "paper_type", "grammage",
    "quantity", "unit_cost", "total_cost",
)


def snapshot(record: Optional[MaterialUsage]) -> dict:
    """The audited view of a usage line; all None for no line"""
    if record is None:
        return {field: None for field in AUDITED_FIELDS}
    return {
        "material_name": record.material_name,
        "paper_size": record.paper_size,
        "paper_type": record.paper_type,
        "grammage": record.grammage,
        "quantity": record.quantity_sheets,
        "unit_cost": record.unit_cost,
        "total_cost": record.total_cost,
    }


class MaterialUsageJournal:

    @staticmethod
    def resolve_material(
        db: Session,
        material_id: Optional[int],
        material_name: Optional[str],
        allow_fuzzy_match: bool = False,
    ) -> Optional[InventoryItem]:
        """
        Find the inventory item a line refers to.

        An explicit id must name an active item. Without an id, a
        case-insensitive partial name match is tried only when
        `allow_fuzzy_match` is on; the lowest id wins.
        """
        if material_id is not None:
            item = db.query(InventoryItem).filter(
                InventoryItem.id == material_id,
                InventoryItem.is_active == True,  # noqa: E712
            ).first()
            if not item:
                raise NotFoundError(f"Inventory item {material_id} not found")
            return item

        if allow_fuzzy_match and material_name and material_name.strip():
            item = db.query(InventoryItem).filter(
                InventoryItem.material_name.ilike(f"%{material_name.strip()}%"),
                InventoryItem.is_active == True,  # noqa: E712
            ).order_by(InventoryItem.id).first()
            if item:
                logger.info("Matched material %r to inventory item %s by name", material_name, item.id)
            return item
        return None

    @staticmethod
    def record(
        db: Session,
        job_id: int,
        caller: CallerIdentity,
        line,
        allow_fuzzy_match: bool = False,
        notifier: Optional[NotificationSink] = None,
    ) -> Tuple[MaterialUsage, Optional[ConsumeResult]]:
        """
        Journal one material line for a job.

        `line` carries material_id, material_name, paper_size, paper_type,
        grammage, quantity (sheets), unit_cost, usage_type, notes and
        update_inventory (see schemas.MaterialLineIn).
        """
        quantity = line.quantity
        if quantity is None or quantity <= 0:
            raise LedgerValidationError(f"Quantity for {line.material_name!r} must be positive")

        item = MaterialUsageJournal.resolve_material(
            db, line.material_id, line.material_name, allow_fuzzy_match,
        )

        consumed: Optional[ConsumeResult] = None
        if item is not None:
            unit_cost = Decimal(str(item.cost_per_sheet))
            if line.update_inventory:
                consumed = StockLedger.consume(
                    db, item.id, quantity, caller, job_id=job_id, notifier=notifier,
                )
                quantity = consumed.sheets_consumed
        else:
            unit_cost = Decimal(str(line.unit_cost or 0))

        record = MaterialUsage(
            job_id=job_id,
            material_id=item.id if item else None,
            material_name=line.material_name,
            paper_size=line.paper_size if line.paper_size is not None else (item.paper_size if item else None),
            paper_type=line.paper_type if line.paper_type is not None else (item.paper_type if item else None),
            grammage=line.grammage if line.grammage is not None else (item.grammage if item else None),
            quantity_sheets=quantity,
            sheets_short=consumed.sheets_short if consumed else 0,
            unit_cost=unit_cost,
            total_cost=line_cost(quantity, unit_cost),
            usage_type=UsageType(line.usage_type or UsageType.PRODUCTION),
            inventory_updated=consumed is not None,
            notes=line.notes,
            recorded_by=caller.user_id,
        )
        db.add(record)
        db.flush()

        logger.info(
            "Recorded %d sheets of %s on job %s (%s)",
            quantity, line.material_name, job_id, record.usage_type.value,
        )
        return record, consumed

    @staticmethod
    def list_for_job(db: Session, job_id: int) -> List[MaterialUsage]:
        return db.query(MaterialUsage).filter(
            MaterialUsage.job_id == job_id
        ).order_by(MaterialUsage.id).all()

    @staticmethod
    def history_for_material(db: Session, material_id: int, limit: int = 50) -> List[MaterialUsage]:
        """Most recent usage of an inventory item across all jobs"""
        return db.query(MaterialUsage).filter(
            MaterialUsage.material_id == material_id
        ).order_by(MaterialUsage.recorded_at.desc(), MaterialUsage.id.desc()).limit(limit).all()
