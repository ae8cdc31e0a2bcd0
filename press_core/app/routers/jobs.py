"""
Jobs API Router
===============
Job creation, status updates with materials/waste, total-cost edits and the
audited material correction endpoint.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import schemas
from ..config import ALLOW_FUZZY_MATERIAL_MATCH, RETURN_STOCK_ON_DELETE
from ..db import run_in_transaction
from ..deps import get_db, get_caller, http_error
from ..models import JobStatus, PaymentStatus
from ..services.edit_auditor import MaterialEditAuditor
from ..services.errors import LedgerError
from ..services.identity import CallerIdentity
from ..services.job_service import JobService

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _flag(requested: Optional[bool], default: bool) -> bool:
    return default if requested is None else requested


@router.post("/", response_model=schemas.JobOut, status_code=201)
def create_job(data: schemas.JobCreate, db: Session = Depends(get_db), caller: CallerIdentity = Depends(get_caller)):
    try:
        job = run_in_transaction(db, JobService.create_job, data, caller)
    except LedgerError as e:
        raise http_error(e)
    db.refresh(job)
    return job


@router.get("/", response_model=List[schemas.JobOut])
def list_jobs(
    status: Optional[JobStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
):
    return JobService.list_jobs(db, caller, status=status, payment_status=payment_status, limit=limit, offset=offset)


@router.get("/ticket/{ticket_id}", response_model=schemas.JobDetailOut)
def get_job_by_ticket(ticket_id: str, db: Session = Depends(get_db), caller: CallerIdentity = Depends(get_caller)):
    try:
        job = JobService.get_by_ticket(db, ticket_id, caller)
        return JobService.get_job_detail(db, job.id, caller)
    except LedgerError as e:
        raise http_error(e)


@router.get("/{job_id}", response_model=schemas.JobDetailOut)
def get_job(job_id: int, db: Session = Depends(get_db), caller: CallerIdentity = Depends(get_caller)):
    try:
        return JobService.get_job_detail(db, job_id, caller)
    except LedgerError as e:
        raise http_error(e)


@router.put("/{job_id}", response_model=schemas.JobOut)
def update_job(job_id: int, data: schemas.JobUpdate, db: Session = Depends(get_db), caller: CallerIdentity = Depends(get_caller)):
    try:
        job = run_in_transaction(db, JobService.update_job, job_id, data, caller)
    except LedgerError as e:
        raise http_error(e)
    db.refresh(job)
    return job


@router.patch("/{job_id}/status", response_model=schemas.JobOut)
def update_status(
    job_id: int,
    req: schemas.JobStatusUpdate,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
):
    try:
        job = run_in_transaction(
            db, JobService.update_status, job_id, req.status, caller,
            materials=req.materials, waste=req.waste,
            allow_fuzzy_match=_flag(req.allow_fuzzy_match, ALLOW_FUZZY_MATERIAL_MATCH),
        )
    except LedgerError as e:
        raise http_error(e)
    db.refresh(job)
    return job


@router.put("/{job_id}/materials")
def update_materials(
    job_id: int,
    req: schemas.MaterialsUpdateRequest,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
):
    """Replace a job's material lines; every change is written to the edit history"""
    try:
        outcome = run_in_transaction(
            db, MaterialEditAuditor.apply_edits, job_id, req.materials, req.edit_reason, caller,
            return_stock_on_delete=_flag(req.return_stock_on_delete, RETURN_STOCK_ON_DELETE),
            allow_fuzzy_match=_flag(req.allow_fuzzy_match, ALLOW_FUZZY_MATERIAL_MATCH),
        )
    except LedgerError as e:
        raise http_error(e)
    return {
        "job_id": outcome.job_id,
        "updated": outcome.updated,
        "added": outcome.added,
        "deleted": outcome.deleted,
        "unchanged": outcome.unchanged,
        "shortages": [
            {"material_id": s.material_id, "sheets_requested": s.sheets_requested,
             "sheets_consumed": s.sheets_consumed, "sheets_short": s.sheets_short}
            for s in outcome.shortages
        ],
        "has_changes": outcome.has_changes,
    }


@router.get("/{job_id}/materials/history", response_model=List[schemas.MaterialEditHistoryOut])
def materials_history(job_id: int, db: Session = Depends(get_db), caller: CallerIdentity = Depends(get_caller)):
    try:
        return JobService.edit_history(db, job_id, caller)
    except LedgerError as e:
        raise http_error(e)
