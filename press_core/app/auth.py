from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from . import models, schemas
from .deps import get_db, verify_password, get_password_hash, create_access_token, require_role
from .logging_config import get_logger

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger(__name__)


@router.post("/login", response_model=schemas.Token)
async def login(request: Request, db: Session = Depends(get_db)):
    """Accept either form-encoded (OAuth2) login or JSON {username,password}."""
    ctype = (request.headers.get("content-type") or "").lower()
    username = None
    password = None

    try:
        if "application/json" in ctype:
            body = await request.json()
        else:
            body = await request.form()
        username = body.get("username")
        password = body.get("password")
    except ValueError:
        logger.info("Unreadable login body (%s)", ctype or "no content-type")

    if not username or not password:
        raise HTTPException(status_code=400, detail="Missing username or password")

    user = db.query(models.User).filter(models.User.username == username).first()
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        logger.warning("Failed login for %r", username)
        raise HTTPException(status_code=400, detail="Incorrect username or password")

    access_token = create_access_token({"sub": user.username, "role": user.role})
    return {"access_token": access_token, "token_type": "bearer", "role": user.role}


@router.post("/register", response_model=schemas.UserOut)
def register(user_in: schemas.UserCreate, db: Session = Depends(get_db), current_user: models.User = Depends(require_role("admin"))):
    if user_in.role not in (models.UserRole.ADMIN.value, models.UserRole.WORKER.value):
        raise HTTPException(status_code=400, detail="Role must be 'admin' or 'worker'")
    existing = db.query(models.User).filter((models.User.username == user_in.username) | (models.User.email == user_in.email)).first()
    if existing:
        raise HTTPException(status_code=400, detail="User with that username or email already exists")
    user = models.User(
        full_name=user_in.full_name,
        email=user_in.email,
        username=user_in.username,
        password_hash=get_password_hash(user_in.password),
        role=user_in.role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User %s (%s) registered by %s", user.username, user.role, current_user.username)
    return user
