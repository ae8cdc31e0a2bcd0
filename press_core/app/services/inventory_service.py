"""
Inventory Catalogue Service
===========================
Create, describe and retire stocked materials.

Stock levels are never written here: opening stock goes through
StockLedger.replenish so it lands in the adjustment trail like any other
delivery.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import schemas
from ..logging_config import get_logger
from ..models import InventoryItem, StockAdjustment
from .alerts import check_stock_status, stock_alert, CRITICAL, LOW, HEALTHY
from .errors import LedgerValidationError, NotFoundError
from .identity import CallerIdentity
from .notifier import NotificationSink, DatabaseNotificationSink
from .stock_ledger import StockLedger, stock_value
from .units import cost_per_sheet, quantity_in_sheets, quantize_money, format_stock

logger = get_logger(__name__)

_STATUS_RANK = {CRITICAL: 0, LOW: 1, HEALTHY: 2}


def describe(item: InventoryItem) -> dict:
    """Item fields plus display stock and status, for API output"""
    out = schemas.InventoryItemOut.model_validate(item).model_dump()
    out["stock_display"] = format_stock(item)
    out["stock_status"] = check_stock_status(
        item.current_stock_sheets, item.threshold_sheets, item.sheets_per_unit
    )["status"]
    return out


class InventoryService:

    @staticmethod
    def create_item(
        db: Session,
        data: schemas.InventoryItemCreate,
        caller: CallerIdentity,
        notifier: Optional[NotificationSink] = None,
    ) -> InventoryItem:
        if data.sheets_per_unit <= 0:
            raise LedgerValidationError("sheets_per_unit must be positive")

        unit_cost = quantize_money(data.unit_cost)
        item = InventoryItem(
            material_name=data.material_name.strip(),
            category=data.category,
            unit_of_measure=data.unit_of_measure,
            paper_size=data.paper_size,
            paper_type=data.paper_type,
            grammage=data.grammage,
            supplier=data.supplier,
            sheets_per_unit=data.sheets_per_unit,
            current_stock_sheets=0,
            threshold_sheets=quantity_in_sheets(data.threshold, data.unit_of_measure, data.sheets_per_unit),
            unit_cost=unit_cost,
            cost_per_sheet=cost_per_sheet(unit_cost, data.sheets_per_unit),
        )
        db.add(item)
        db.flush()

        sink = notifier if notifier is not None else DatabaseNotificationSink(db)
        opening = quantity_in_sheets(data.current_stock, data.unit_of_measure, data.sheets_per_unit)
        if opening > 0:
            StockLedger.replenish(db, item.id, opening, "Opening stock", caller, notifier=sink)

        if check_stock_status(item.current_stock_sheets, item.threshold_sheets)["is_low"]:
            # No earlier level to compare with; alert as if it had just dropped
            sink.notify_payload(stock_alert(item, item.threshold_sheets * 2 + 1))

        logger.info(
            "Created inventory item %s (%s) with %d sheets",
            item.id, item.material_name, item.current_stock_sheets,
        )
        return item

    @staticmethod
    def update_item(db: Session, item_id: int, data: schemas.InventoryItemUpdate, caller: CallerIdentity) -> InventoryItem:
        item = InventoryService.get_item(db, item_id)

        for field in ("material_name", "category", "unit_of_measure", "paper_size",
                      "paper_type", "grammage", "supplier"):
            value = getattr(data, field)
            if value is not None:
                setattr(item, field, value)

        if data.sheets_per_unit is not None:
            item.sheets_per_unit = data.sheets_per_unit
        if data.threshold is not None:
            item.threshold_sheets = quantity_in_sheets(data.threshold, item.unit_of_measure, item.sheets_per_unit)
        if data.unit_cost is not None:
            item.unit_cost = quantize_money(data.unit_cost)
        item.cost_per_sheet = cost_per_sheet(item.unit_cost, item.sheets_per_unit)
        item.updated_at = datetime.utcnow()
        db.flush()

        logger.info("Inventory item %s updated by user %s", item.id, caller.user_id)
        return item

    @staticmethod
    def deactivate_item(db: Session, item_id: int, caller: CallerIdentity) -> InventoryItem:
        """Soft delete; usage history keeps pointing at the item"""
        item = InventoryService.get_item(db, item_id)
        item.is_active = False
        item.updated_at = datetime.utcnow()
        db.flush()
        logger.info("Inventory item %s deactivated by user %s", item.id, caller.user_id)
        return item

    @staticmethod
    def get_item(db: Session, item_id: int) -> InventoryItem:
        item = db.query(InventoryItem).filter(InventoryItem.id == item_id).first()
        if not item:
            raise NotFoundError(f"Inventory item {item_id} not found")
        return item

    @staticmethod
    def list_items(
        db: Session,
        active_only: bool = True,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[InventoryItem]:
        query = db.query(InventoryItem)
        if active_only:
            query = query.filter(InventoryItem.is_active == True)  # noqa: E712
        if category:
            query = query.filter(InventoryItem.category == category)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                InventoryItem.material_name.ilike(pattern),
                InventoryItem.paper_type.ilike(pattern),
                InventoryItem.supplier.ilike(pattern),
            ))
        return query.order_by(InventoryItem.material_name, InventoryItem.id).all()

    @staticmethod
    def list_low_stock(db: Session) -> List[dict]:
        """Active items in the LOW or CRITICAL band, most critical first"""
        rows = []
        for item in InventoryService.list_items(db, active_only=True):
            status = check_stock_status(item.current_stock_sheets, item.threshold_sheets, item.sheets_per_unit)
            if status["status"] == HEALTHY:
                continue
            rows.append((item, status))
        rows.sort(key=lambda r: (_STATUS_RANK[r[1]["status"]], r[1]["percentage"], r[0].id))
        return [
            {**describe(item), "percentage": status["percentage"], "priority": status["priority"]}
            for item, status in rows
        ]

    @staticmethod
    def check_availability(db: Session, item_id: int, sheets_needed: int) -> dict:
        item = InventoryService.get_item(db, item_id)
        available = item.current_stock_sheets
        return {
            "material_id": item.id,
            "sheets_needed": sheets_needed,
            "sheets_available": available,
            "is_sufficient": available >= sheets_needed,
            "shortfall": max(0, sheets_needed - available),
        }

    @staticmethod
    def adjustment_history(db: Session, item_id: int, limit: int = 50) -> List[StockAdjustment]:
        InventoryService.get_item(db, item_id)
        return db.query(StockAdjustment).filter(
            StockAdjustment.material_id == item_id
        ).order_by(StockAdjustment.adjusted_at.desc(), StockAdjustment.id.desc()).limit(limit).all()

    @staticmethod
    def total_stock_value(db: Session) -> Decimal:
        total = Decimal("0")
        for item in InventoryService.list_items(db, active_only=True):
            total += stock_value(item)
        return quantize_money(total)
