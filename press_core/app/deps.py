from datetime import datetime, timedelta
from typing import Generator, Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from . import models
from .config import ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, get_secret_key
from .db import SessionLocal
from .services.errors import (
    LedgerError, LedgerValidationError, NotFoundError, AccessDeniedError,
    InvalidOperationError, DuplicateRecordError,
)
from .services.identity import CallerIdentity

SECRET_KEY = get_secret_key()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    try:
        return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt"""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=12)).decode('utf-8')


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        username: str = payload.get("sub")
        if username is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception
    user = db.query(models.User).filter(models.User.username == username).first()
    if user is None or not user.is_active:
        raise credentials_exception
    return user


def get_caller(current_user: models.User = Depends(get_current_user)) -> CallerIdentity:
    return CallerIdentity.from_user(current_user)


def require_role(*allowed_roles):
    def role_checker(current_user: models.User = Depends(get_current_user)):
        if current_user.role not in allowed_roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return current_user

    return role_checker


def require_admin_caller(current_user: models.User = Depends(require_role("admin"))) -> CallerIdentity:
    return CallerIdentity.from_user(current_user)


def http_error(e: LedgerError) -> HTTPException:
    """Translate a ledger exception into the matching HTTP error"""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, AccessDeniedError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, DuplicateRecordError):
        return HTTPException(status_code=409, detail={"code": e.code, "detail": e.detail})
    if isinstance(e, (LedgerValidationError, InvalidOperationError)):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=500, detail="Internal ledger error")
