"""
Material Edit Auditor
=====================
Applies a full replacement set of material lines to a job after the fact.

For each line the auditor decides whether it was changed, left alone, added
or dropped, reconciles the stock difference through StockLedger.apply_delta,
and appends exactly one MaterialEditHistory row per real change. The whole
batch runs in the caller's transaction: one bad line aborts every line.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from ..logging_config import get_logger
from ..models import Job, MaterialUsage, MaterialEditHistory
from .errors import LedgerValidationError, NotFoundError
from .identity import CallerIdentity, ensure_job_access
from .notifier import NotificationSink, DatabaseNotificationSink
from .stock_ledger import StockLedger, ConsumeResult
from .units import line_cost
from .usage_journal import MaterialUsageJournal, snapshot, AUDITED_FIELDS

logger = get_logger(__name__)

MIN_REASON_LENGTH = 5
ADDED_SUFFIX = " (New material added)"
DELETED_SUFFIX = " (Material deleted)"


@dataclass
class EditOutcome:
    job_id: int
    updated: List[int] = field(default_factory=list)
    added: List[int] = field(default_factory=list)
    deleted: List[int] = field(default_factory=list)
    unchanged: List[int] = field(default_factory=list)
    history: List[MaterialEditHistory] = field(default_factory=list)
    shortages: List[ConsumeResult] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.updated or self.added or self.deleted)


def validate_edit_reason(edit_reason: Optional[str]) -> str:
    reason = (edit_reason or "").strip()
    if len(reason) < MIN_REASON_LENGTH:
        raise LedgerValidationError(
            f"Edit reason is required (at least {MIN_REASON_LENGTH} characters)"
        )
    return reason


def _history_row(job_id, usage_id, material_id, before: dict, after: dict, delta, reason, caller,
                 previous_material_id=None, returned_sheets=0):
    row = MaterialEditHistory(
        material_usage_id=usage_id,
        job_id=job_id,
        material_id=material_id,
        previous_material_id=previous_material_id,
        stock_delta_sheets=delta,
        returned_sheets=returned_sheets,
        edit_reason=reason,
        edited_by=caller.user_id,
    )
    for name in AUDITED_FIELDS:
        setattr(row, f"previous_{name}", before[name])
        setattr(row, f"new_{name}", after[name])
    return row


class MaterialEditAuditor:

    @staticmethod
    def apply_edits(
        db: Session,
        job_id: int,
        lines,
        edit_reason: str,
        caller: CallerIdentity,
        return_stock_on_delete: bool = False,
        allow_fuzzy_match: bool = False,
        notifier: Optional[NotificationSink] = None,
    ) -> EditOutcome:
        reason = validate_edit_reason(edit_reason)
        lines = list(lines)
        for line in lines:
            if line.quantity is None or line.quantity <= 0:
                raise LedgerValidationError(
                    f"Quantity for {line.material_name!r} must be positive; omit the line to delete it"
                )

        seen = set()
        for line in lines:
            if line.id is None:
                continue
            if line.id in seen:
                raise LedgerValidationError(f"Material line {line.id} appears more than once")
            seen.add(line.id)

        job = db.query(Job).filter(Job.id == job_id).with_for_update().first()
        if not job:
            raise NotFoundError(f"Job {job_id} not found")
        ensure_job_access(job, caller)

        existing = {u.id: u for u in MaterialUsageJournal.list_for_job(db, job_id)}
        foreign = seen - set(existing)
        if foreign:
            raise NotFoundError(
                f"Material line(s) {sorted(foreign)} do not belong to job {job.ticket_id}"
            )

        sink = notifier if notifier is not None else DatabaseNotificationSink(db)
        outcome = EditOutcome(job_id=job.id)

        for usage_id in sorted(set(existing) - seen):
            MaterialEditAuditor._delete_line(
                db, job, existing[usage_id], reason, caller, return_stock_on_delete, sink, outcome,
            )

        for line in lines:
            if line.id is None:
                MaterialEditAuditor._add_line(db, job, line, reason, caller, allow_fuzzy_match, sink, outcome)
            else:
                MaterialEditAuditor._edit_line(db, job, existing[line.id], line, reason, caller, sink, outcome)

        if outcome.has_changes:
            job.updated_at = datetime.utcnow()
            db.flush()
            sink.notify(
                title="Job Materials Updated",
                message=(
                    f"Materials on job {job.ticket_id} were edited by {caller.name or caller.user_id}: "
                    f"{len(outcome.updated)} changed, {len(outcome.added)} added, "
                    f"{len(outcome.deleted)} removed. Reason: {reason}"
                ),
                type="materials_updated",
                related_entity_id=job.id,
                priority="medium",
            )

        logger.info(
            "Material edit on job %s by user %s: updated=%s added=%s deleted=%s unchanged=%s",
            job.ticket_id, caller.user_id, outcome.updated, outcome.added,
            outcome.deleted, outcome.unchanged,
        )
        return outcome

    # -------------------------------------------------------------------------

    @staticmethod
    def _add_line(db, job, line, reason, caller, allow_fuzzy_match, sink, outcome):
        record, consumed = MaterialUsageJournal.record(
            db, job.id, caller, line, allow_fuzzy_match=allow_fuzzy_match, notifier=sink,
        )
        delta = -consumed.sheets_consumed if consumed else 0
        if consumed and consumed.is_shortage:
            outcome.shortages.append(consumed)

        row = _history_row(
            job.id, record.id, record.material_id, snapshot(None), snapshot(record),
            delta, reason + ADDED_SUFFIX, caller,
        )
        db.add(row)
        outcome.added.append(record.id)
        outcome.history.append(row)

    @staticmethod
    def _delete_line(db, job, record, reason, caller, return_stock, sink, outcome):
        before = snapshot(record)
        delta = 0
        if return_stock and record.inventory_updated and record.material_id and record.quantity_sheets:
            StockLedger.apply_delta(
                db, record.material_id, record.quantity_sheets, caller,
                reason=f"Job {job.ticket_id}: {reason}{DELETED_SUFFIX}",
                job_id=job.id, notifier=sink,
            )
            delta = record.quantity_sheets

        row = _history_row(
            job.id, record.id, record.material_id, before, snapshot(None),
            delta, reason + DELETED_SUFFIX, caller,
        )
        db.add(row)
        outcome.deleted.append(record.id)
        outcome.history.append(row)
        db.delete(record)
        db.flush()

    @staticmethod
    def _edit_line(db, job, record, line, reason, caller, sink, outcome):
        old_material_id = record.material_id
        new_material_id = line.material_id if line.material_id is not None else old_material_id
        material_changed = new_material_id != old_material_id

        new_item = None
        if material_changed:
            new_item = MaterialUsageJournal.resolve_material(db, new_material_id, line.material_name)
            new_unit_cost = Decimal(str(new_item.cost_per_sheet))
        elif line.unit_cost is not None:
            new_unit_cost = Decimal(str(line.unit_cost))
        else:
            new_unit_cost = Decimal(str(record.unit_cost))

        # Omitted paper fields keep what the line already has, or inherit
        # from the newly linked item
        source = new_item if new_item is not None else record
        paper = {
            name: getattr(line, name) if getattr(line, name) is not None else getattr(source, name)
            for name in ("paper_size", "paper_type", "grammage")
        }

        proposed = {
            "material_name": line.material_name,
            **paper,
            "quantity": line.quantity,
            "unit_cost": new_unit_cost,
            "total_cost": line_cost(line.quantity, new_unit_cost),
        }
        before = snapshot(record)
        if not material_changed and proposed == before:
            outcome.unchanged.append(record.id)
            return

        stock_note = f"Job {job.ticket_id}: {reason}"
        quantity = line.quantity
        sheets_short = 0
        delta = 0
        returned = 0

        if material_changed:
            if record.inventory_updated and old_material_id and record.quantity_sheets:
                StockLedger.apply_delta(
                    db, old_material_id, record.quantity_sheets, caller,
                    reason=stock_note, job_id=job.id, notifier=sink,
                )
                returned = record.quantity_sheets
            inventory_updated = False
            if new_item is not None and line.update_inventory:
                result = StockLedger.apply_delta(
                    db, new_item.id, -quantity, caller,
                    reason=stock_note, job_id=job.id, notifier=sink,
                )
                quantity = result.sheets_consumed
                sheets_short = result.sheets_short
                delta = -result.sheets_consumed
                inventory_updated = True
                if result.is_shortage:
                    outcome.shortages.append(result)
            record.material_id = new_item.id if new_item else None
            record.inventory_updated = inventory_updated
        elif record.inventory_updated and old_material_id:
            change = line.quantity - record.quantity_sheets
            if change != 0:
                result = StockLedger.apply_delta(
                    db, old_material_id, -change, caller,
                    reason=stock_note, job_id=job.id, notifier=sink,
                )
                if change > 0:
                    quantity = record.quantity_sheets + result.sheets_consumed
                    sheets_short = result.sheets_short
                    delta = -result.sheets_consumed
                    if result.is_shortage:
                        outcome.shortages.append(result)
                else:
                    delta = -change
            else:
                sheets_short = record.sheets_short

        record.material_name = line.material_name
        record.paper_size = paper["paper_size"]
        record.paper_type = paper["paper_type"]
        record.grammage = paper["grammage"]
        record.quantity_sheets = quantity
        record.sheets_short = sheets_short
        record.unit_cost = new_unit_cost
        record.total_cost = line_cost(quantity, new_unit_cost)
        if line.notes is not None:
            record.notes = line.notes
        record.updated_at = datetime.utcnow()
        db.flush()

        row = _history_row(
            job.id, record.id, record.material_id, before, snapshot(record),
            delta, reason, caller,
            previous_material_id=old_material_id if material_changed else None,
            returned_sheets=returned,
        )
        db.add(row)
        outcome.updated.append(record.id)
        outcome.history.append(row)
