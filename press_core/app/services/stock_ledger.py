"""
Stock Ledger
============
The only code that writes InventoryItem.current_stock_sheets.

Every operation:
- locks the inventory row (SELECT ... FOR UPDATE) for the rest of the
  caller's transaction
- bumps updated_at
- evaluates low-stock alerts through the notification sink

Job consumption is fail-soft: asking for more sheets than are on hand takes
what is there, reports the shortfall and raises a high-priority alert.
Manual removals are strict and raise InsufficientStockError.
"""

from datetime import datetime
from decimal import Decimal
from typing import NamedTuple, Optional

from sqlalchemy.orm import Session

from ..logging_config import get_logger
from ..models import InventoryItem, StockAdjustment, AdjustmentType
from .alerts import stock_alert
from .errors import (
    LedgerValidationError, NotFoundError, InsufficientStockError,
)
from .identity import CallerIdentity
from .notifier import NotificationSink, DatabaseNotificationSink
from .units import cost_per_sheet, quantize_money, to_display

logger = get_logger(__name__)


class ConsumeResult(NamedTuple):
    material_id: int
    sheets_requested: int
    sheets_consumed: int
    stock_before: int
    new_stock: int

    @property
    def sheets_short(self) -> int:
        return self.sheets_requested - self.sheets_consumed

    @property
    def is_shortage(self) -> bool:
        return self.sheets_short > 0


def _sink(db: Session, notifier: Optional[NotificationSink]) -> NotificationSink:
    return notifier if notifier is not None else DatabaseNotificationSink(db)


class StockLedger:
    """Row-locked stock mutations. All methods run inside the caller's transaction."""

    @staticmethod
    def lock_item(db: Session, material_id: int, active_only: bool = False) -> InventoryItem:
        query = db.query(InventoryItem).filter(InventoryItem.id == material_id)
        if active_only:
            query = query.filter(InventoryItem.is_active == True)  # noqa: E712
        item = query.with_for_update().first()
        if not item:
            raise NotFoundError(f"Inventory item {material_id} not found")
        return item

    @staticmethod
    def _write(db, item, new_stock, notifier, stock_before, shortage=0):
        item.current_stock_sheets = new_stock
        item.updated_at = datetime.utcnow()
        db.flush()
        _sink(db, notifier).notify_payload(stock_alert(item, stock_before, shortage))

    @staticmethod
    def _take(db, item, sheets_requested, notifier, job_id=None) -> ConsumeResult:
        before = item.current_stock_sheets
        actual = min(sheets_requested, before)
        result = ConsumeResult(item.id, sheets_requested, actual, before, before - actual)

        if result.is_shortage:
            logger.warning(
                "Stock shortage on %s (id=%s): requested %d, consumed %d (job %s)",
                item.material_name, item.id, sheets_requested, actual, job_id,
            )
        StockLedger._write(db, item, result.new_stock, notifier, before, result.sheets_short)
        return result

    @staticmethod
    def consume(
        db: Session,
        material_id: int,
        sheets_requested: int,
        caller: CallerIdentity,
        job_id: Optional[int] = None,
        notifier: Optional[NotificationSink] = None,
    ) -> ConsumeResult:
        """
        Take up to `sheets_requested` sheets from stock.

        Never drives stock below zero. Callers must journal
        `result.sheets_consumed`, not the requested amount.
        """
        if sheets_requested is None or sheets_requested < 0:
            raise LedgerValidationError("Sheets to consume cannot be negative")

        item = StockLedger.lock_item(db, material_id)
        result = StockLedger._take(db, item, int(sheets_requested), notifier, job_id)
        logger.info(
            "Consumed %d sheets of %s (job %s, by user %s); stock now %s",
            result.sheets_consumed, item.material_name, job_id, caller.user_id,
            to_display(result.new_stock, item.sheets_per_unit)["display"],
        )
        return result

    @staticmethod
    def replenish(
        db: Session,
        material_id: int,
        sheets_to_add: int,
        reason: str,
        caller: CallerIdentity,
        unit_cost=None,
        notes: Optional[str] = None,
        notifier: Optional[NotificationSink] = None,
    ) -> int:
        """Add stock and record an `add` adjustment. Returns the new stock level."""
        adjustment = StockLedger._replenish(
            db, material_id, sheets_to_add, reason, caller, unit_cost, notes, notifier,
        )
        return adjustment.stock_after

    @staticmethod
    def _replenish(db, material_id, sheets_to_add, reason, caller, unit_cost, notes, notifier) -> StockAdjustment:
        if sheets_to_add is None or sheets_to_add <= 0:
            raise LedgerValidationError("Sheets to add must be positive")

        item = StockLedger.lock_item(db, material_id)
        before = item.current_stock_sheets

        if unit_cost is not None:
            item.unit_cost = quantize_money(unit_cost)
            item.cost_per_sheet = cost_per_sheet(item.unit_cost, item.sheets_per_unit)

        StockLedger._write(db, item, before + int(sheets_to_add), notifier, before)
        adjustment = StockAdjustment(
            material_id=item.id,
            adjustment_type=AdjustmentType.ADD,
            sheets_change=int(sheets_to_add),
            stock_before=before,
            stock_after=item.current_stock_sheets,
            reason=reason,
            notes=notes,
            adjusted_by=caller.user_id,
        )
        db.add(adjustment)
        db.flush()

        logger.info(
            "Replenished %s with %d sheets (%s); stock now %d",
            item.material_name, sheets_to_add, reason, item.current_stock_sheets,
        )
        return adjustment

    @staticmethod
    def apply_delta(
        db: Session,
        material_id: int,
        signed_delta: int,
        caller: CallerIdentity,
        reason: str,
        job_id: Optional[int] = None,
        notifier: Optional[NotificationSink] = None,
    ) -> ConsumeResult:
        """
        Reconcile a material edit against stock.

        Positive `signed_delta` returns sheets; negative consumes more under
        the same shortage policy as consume(). Writes a `correction` adjustment.
        The returned ConsumeResult describes the consumption side; for a
        return, sheets_requested and sheets_consumed are both 0.
        """
        item = StockLedger.lock_item(db, material_id)
        before = item.current_stock_sheets
        signed_delta = int(signed_delta)

        if signed_delta >= 0:
            StockLedger._write(db, item, before + signed_delta, notifier, before)
            result = ConsumeResult(item.id, 0, 0, before, item.current_stock_sheets)
            applied = signed_delta
        else:
            result = StockLedger._take(db, item, -signed_delta, notifier, job_id)
            applied = -result.sheets_consumed

        if applied != 0:
            db.add(StockAdjustment(
                material_id=item.id,
                adjustment_type=AdjustmentType.CORRECTION,
                sheets_change=applied,
                stock_before=before,
                stock_after=item.current_stock_sheets,
                reason=reason,
                job_id=job_id,
                adjusted_by=caller.user_id,
            ))
            db.flush()
            logger.info(
                "Corrected %s by %+d sheets for job %s: %s",
                item.material_name, applied, job_id, reason,
            )
        return result

    @staticmethod
    def adjust(
        db: Session,
        material_id: int,
        adjustment_type: AdjustmentType,
        quantity_sheets: int,
        caller: CallerIdentity,
        reason: str,
        notes: Optional[str] = None,
        unit_cost=None,
        notifier: Optional[NotificationSink] = None,
    ) -> StockAdjustment:
        """
        Manual stock management: add, remove or set an absolute level.

        Unlike job consumption, a removal larger than the stock on hand is
        rejected with InsufficientStockError.
        """
        adjustment_type = AdjustmentType(adjustment_type)
        if not reason or not reason.strip():
            raise LedgerValidationError("Adjustment reason is required")
        if quantity_sheets is None or quantity_sheets < 0:
            raise LedgerValidationError("Quantity cannot be negative")

        if adjustment_type == AdjustmentType.ADD:
            return StockLedger._replenish(
                db, material_id, quantity_sheets, reason, caller, unit_cost, notes, notifier,
            )

        if adjustment_type == AdjustmentType.CORRECTION:
            raise LedgerValidationError("Corrections are only made through material edits")

        item = StockLedger.lock_item(db, material_id)
        before = item.current_stock_sheets

        if adjustment_type == AdjustmentType.REMOVE:
            if quantity_sheets == 0:
                raise LedgerValidationError("Sheets to remove must be positive")
            if quantity_sheets > before:
                raise InsufficientStockError(
                    f"Insufficient stock. Need {quantity_sheets} sheets, have {before} sheets"
                )
            new_stock = before - quantity_sheets
        else:
            new_stock = int(quantity_sheets)

        if unit_cost is not None:
            item.unit_cost = quantize_money(unit_cost)
            item.cost_per_sheet = cost_per_sheet(item.unit_cost, item.sheets_per_unit)

        StockLedger._write(db, item, new_stock, notifier, before)
        adjustment = StockAdjustment(
            material_id=item.id,
            adjustment_type=adjustment_type,
            sheets_change=new_stock - before,
            stock_before=before,
            stock_after=new_stock,
            reason=reason,
            notes=notes,
            adjusted_by=caller.user_id,
        )
        db.add(adjustment)
        db.flush()

        logger.info(
            "Manual %s on %s: %d -> %d sheets (%s)",
            adjustment_type.value, item.material_name, before, new_stock, reason,
        )
        return adjustment


def stock_value(item: InventoryItem) -> Decimal:
    return quantize_money(Decimal(item.current_stock_sheets) * Decimal(str(item.cost_per_sheet or 0)))
