from fastapi import APIRouter, Depends, HTTPException, Request
import logging
import os
from uuid import UUID
from sqlalchemy.orm import Session
import pyotp
from ..database import get_db
from .. import models, schemas, audit, rbac
from ..auth import get_password_hash, verify_password, create_access_token, get_current_user
from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
testing = os.getenv("TESTING") == "1"

def rate_limit(limit: str):
    if testing:
        def wrapper(func):
            return func
        return wrapper
    return limiter.limit(limit)

router = APIRouter(prefix="/api/auth", tags=["auth"])

@router.post("/register", response_model=schemas.Token)
@rate_limit("5/minute")
async def register(request: Request, user: schemas.UserCreate, db: Session = Depends(get_db)):
    existing = db.query(models.User).filter(models.User.email == user.email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    db_user = models.User(
        email=user.email,
        hashed_password=get_password_hash(user.password),
        full_name=user.full_name,
        role=user.role,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    audit.log_action(db, str(db_user.id), "register", "user", str(db_user.id), {"role": db_user.role})
    token = create_access_token({"sub": db_user.email})
    return schemas.Token(access_token=token)


@router.get("/me", response_model=schemas.UserOut)
async def read_me(current_user: models.User = Depends(get_current_user)):
    return current_user


@router.put("/users/{user_id}/role", response_model=schemas.UserOut)
async def assign_role(
    user_id: UUID,
    data: schemas.RoleAssignment,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    rbac.require_admin(current_user)
    db_user = db.get(models.User, user_id)
    if not db_user:
        raise HTTPException(status_code=404, detail="User not found")
    previous = db_user.role
    db_user.role = data.role
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    audit.log_action(
        db, str(current_user.id), "user.role_assign", "user", str(db_user.id),
        {"from": previous, "to": db_user.role},
    )
    logger.info("user %s role %s -> %s", db_user.id, previous, db_user.role)
    return db_user


@router.post("/enable-2fa", response_model=schemas.TwoFactorEnableOut)
async def enable_two_factor(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    secret = pyotp.random_base32()
    current_user.two_factor_secret = secret
    db.add(current_user)
    db.commit()
    url = pyotp.totp.TOTP(secret).provisioning_uri(
        name=current_user.email, issuer_name="Compliance Portal"
    )
    return schemas.TwoFactorEnableOut(secret=secret, otpauth_url=url)


@router.post("/verify-2fa")
async def verify_two_factor(
    data: schemas.TwoFactorVerifyIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    if not current_user.two_factor_secret:
        raise HTTPException(status_code=400, detail="2FA not initiated")
    totp = pyotp.TOTP(current_user.two_factor_secret)
    if not totp.verify(data.code, valid_window=1):
        raise HTTPException(status_code=400, detail="Invalid code")
    current_user.two_factor_enabled = True
    db.add(current_user)
    db.commit()
    return {"status": "enabled"}

@router.post("/login", response_model=schemas.Token)
@rate_limit("10/minute")
async def login(request: Request, user: schemas.LoginRequest, db: Session = Depends(get_db)):
    db_user = db.query(models.User).filter(models.User.email == user.email).first()
    if not db_user or not verify_password(user.password, db_user.hashed_password):
        logger.info("rejected login for %s", user.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if db_user.two_factor_enabled:
        if not user.otp_code:
            raise HTTPException(status_code=401, detail="Two-factor code required")
        totp = pyotp.TOTP(db_user.two_factor_secret)
        if not totp.verify(user.otp_code, valid_window=1):
            raise HTTPException(status_code=401, detail="Invalid two-factor code")
    token = create_access_token({"sub": db_user.email})
    audit.log_action(db, str(db_user.id), "login", "user", str(db_user.id))
    return schemas.Token(access_token=token)
