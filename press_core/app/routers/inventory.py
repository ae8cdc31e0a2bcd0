"""
Inventory API Router
====================
Paper and material catalogue, manual stock adjustments and the stock trail.
Stock changes go through StockLedger; this module only maps HTTP to it.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import schemas
from ..db import run_in_transaction
from ..deps import get_db, get_caller, require_admin_caller, http_error
from ..services.errors import LedgerError
from ..services.identity import CallerIdentity
from ..services.inventory_service import InventoryService, describe
from ..services.stock_ledger import StockLedger
from ..services.units import to_sheets, to_display, calculate_cost, quantity_in_sheets
from ..services.usage_journal import MaterialUsageJournal

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("/", response_model=List[schemas.InventoryItemOut])
def list_inventory(
    category: Optional[str] = None,
    search: Optional[str] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
):
    items = InventoryService.list_items(db, active_only=not include_inactive, category=category, search=search)
    return [describe(item) for item in items]


@router.get("/low-stock")
def low_stock(db: Session = Depends(get_db), caller: CallerIdentity = Depends(get_caller)):
    return InventoryService.list_low_stock(db)


@router.post("/calculate-sheets")
def calculate_sheets(req: schemas.SheetCalculationRequest, caller: CallerIdentity = Depends(get_caller)):
    total = to_sheets(req.reams, req.sheets, req.sheets_per_ream)
    result = to_display(total, req.sheets_per_ream)
    if req.cost_per_ream is not None:
        result["cost"] = calculate_cost(total, req.cost_per_ream, req.sheets_per_ream)
    return result


@router.post("/", response_model=schemas.InventoryItemOut, status_code=201)
def create_item(
    data: schemas.InventoryItemCreate,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_admin_caller),
):
    try:
        item = run_in_transaction(db, InventoryService.create_item, data, caller)
    except LedgerError as e:
        raise http_error(e)
    db.refresh(item)
    return describe(item)


@router.get("/{item_id}", response_model=schemas.InventoryItemOut)
def get_item(item_id: int, db: Session = Depends(get_db), caller: CallerIdentity = Depends(get_caller)):
    try:
        return describe(InventoryService.get_item(db, item_id))
    except LedgerError as e:
        raise http_error(e)


@router.put("/{item_id}", response_model=schemas.InventoryItemOut)
def update_item(
    item_id: int,
    data: schemas.InventoryItemUpdate,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_admin_caller),
):
    try:
        item = run_in_transaction(db, InventoryService.update_item, item_id, data, caller)
    except LedgerError as e:
        raise http_error(e)
    db.refresh(item)
    return describe(item)


@router.delete("/{item_id}")
def deactivate_item(item_id: int, db: Session = Depends(get_db), caller: CallerIdentity = Depends(require_admin_caller)):
    try:
        run_in_transaction(db, InventoryService.deactivate_item, item_id, caller)
    except LedgerError as e:
        raise http_error(e)
    return {"status": "ok", "message": f"Inventory item {item_id} deactivated"}


@router.post("/{item_id}/adjust", response_model=schemas.StockAdjustmentOut)
def adjust_stock(
    item_id: int,
    req: schemas.StockAdjustRequest,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_admin_caller),
):
    """Manual add/remove/set; quantity is in the item's unit of measure"""
    try:
        item = InventoryService.get_item(db, item_id)
        sheets = quantity_in_sheets(req.quantity, item.unit_of_measure, item.sheets_per_unit)
        adjustment = run_in_transaction(
            db, StockLedger.adjust, item_id, req.adjustment_type, sheets, caller,
            reason=req.reason, notes=req.notes, unit_cost=req.unit_cost,
        )
    except LedgerError as e:
        raise http_error(e)
    db.refresh(adjustment)
    return adjustment


@router.get("/{item_id}/history")
def item_history(
    item_id: int,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
):
    """Stock adjustments and job usage for one item, newest first"""
    try:
        item = InventoryService.get_item(db, item_id)
        adjustments = InventoryService.adjustment_history(db, item_id, limit)
    except LedgerError as e:
        raise http_error(e)
    usage = MaterialUsageJournal.history_for_material(db, item_id, limit)
    return {
        "item": describe(item),
        "adjustments": [schemas.StockAdjustmentOut.model_validate(a) for a in adjustments],
        "usage": [schemas.MaterialUsageOut.model_validate(u) for u in usage],
    }


@router.get("/{item_id}/availability")
def availability(
    item_id: int,
    sheets_needed: int = Query(..., ge=0),
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
):
    try:
        return InventoryService.check_availability(db, item_id, sheets_needed)
    except LedgerError as e:
        raise http_error(e)
