from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from . import models, schemas
from .deps import get_db, get_current_user, require_role

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("", response_model=List[schemas.CustomerOut])
def list_customers(
    search: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    q = db.query(models.Customer)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(models.Customer.name.ilike(pattern) | models.Customer.phone.ilike(pattern))
    return q.order_by(models.Customer.last_interaction_date.desc(), models.Customer.id.desc()).limit(limit).all()


@router.get("/{customer_id}", response_model=schemas.CustomerDetailOut)
def get_customer(customer_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(require_role("admin"))):
    cust = db.query(models.Customer).filter(models.Customer.id == customer_id).first()
    if not cust:
        raise HTTPException(status_code=404, detail="Customer not found")
    jobs = db.query(models.Job).filter(models.Job.customer_id == customer_id).order_by(models.Job.created_at.desc()).all()
    out = schemas.CustomerOut.model_validate(cust).model_dump()
    out["outstanding_balance"] = sum((j.balance for j in jobs), start=0)
    out["jobs"] = jobs
    return out
