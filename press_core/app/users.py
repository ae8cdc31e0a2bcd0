from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from . import models, schemas
from .deps import get_db, get_current_user, verify_password, get_password_hash, require_role
from .logging_config import get_logger

router = APIRouter(prefix="/users", tags=["users"])
logger = get_logger(__name__)


@router.get("", response_model=List[schemas.UserOut])
def list_users(db: Session = Depends(get_db), current_user: models.User = Depends(require_role("admin"))):
    """Staff accounts, for assigning jobs to workers"""
    return db.query(models.User).filter(models.User.is_active == True).order_by(models.User.full_name).all()  # noqa: E712


@router.get("/me", response_model=schemas.UserOut)
def me_user(current_user: models.User = Depends(get_current_user)):
    return current_user


@router.post("/change-password")
def change_password(pw: schemas.ChangePasswordIn, db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    if not verify_password(pw.old_password, current_user.password_hash):
        logger.warning("Password change for %s rejected: wrong current password", current_user.username)
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    if len(pw.new_password) < 6:
        raise HTTPException(status_code=400, detail="New password must be at least 6 characters long")

    current_user.password_hash = get_password_hash(pw.new_password)
    db.commit()
    logger.info("Password changed for %s", current_user.username)
    return {"status": "ok", "message": "Password updated"}
