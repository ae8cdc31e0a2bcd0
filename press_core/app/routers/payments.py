from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import schemas
from ..db import run_in_transaction
from ..deps import get_db, get_caller, http_error
from ..models import Job, PaymentMethod, PaymentType
from ..services.errors import LedgerError
from ..services.identity import CallerIdentity
from ..services.job_ledger import JobLedger

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/", response_model=schemas.PaymentRecorded, status_code=201)
def record_payment(req: schemas.PaymentCreate, db: Session = Depends(get_db), caller: CallerIdentity = Depends(get_caller)):
    try:
        payment = run_in_transaction(
            db, JobLedger.record_payment, req.job_id, req.amount,
            req.payment_type, req.payment_method, caller, notes=req.notes,
        )
    except LedgerError as e:
        raise http_error(e)
    db.refresh(payment)
    job = db.query(Job).filter(Job.id == payment.job_id).first()
    return {"payment": payment, "job": job}


@router.get("/", response_model=schemas.PaymentListOut)
def list_payments(
    job_id: Optional[int] = None,
    payment_type: Optional[PaymentType] = None,
    payment_method: Optional[PaymentMethod] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = Query(20, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
):
    return JobLedger.list_payments(
        db, job_id=job_id, payment_type=payment_type, payment_method=payment_method,
        start_date=start_date, end_date=end_date, caller=caller, limit=limit, offset=offset,
    )


@router.get("/receipt/{ref}", response_model=schemas.ReceiptOut)
def payment_receipt(ref: str, db: Session = Depends(get_db), caller: CallerIdentity = Depends(get_caller)):
    """`ref` is a payment id or a receipt number"""
    try:
        return JobLedger.receipt(db, ref, caller=caller)
    except LedgerError as e:
        raise http_error(e)


@router.get("/job/{job_id}", response_model=List[schemas.PaymentOut])
def job_payments(job_id: int, db: Session = Depends(get_db), caller: CallerIdentity = Depends(get_caller)):
    try:
        return JobLedger.payments_for_job(db, job_id)
    except LedgerError as e:
        raise http_error(e)
