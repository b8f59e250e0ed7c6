"""Password hashing, bearer tokens and the authenticated-user dependency."""

from __future__ import annotations

import hashlib
import hmac
import os
import secrets
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from . import models
from .database import get_db

SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
_PBKDF2_ROUNDS = 200_000

bearer_scheme = HTTPBearer(auto_error=False)


def _hash(password: str, salt_hex: str) -> str:
    digest = hashlib.pbkdf2_hmac(
        "sha256", (password or "").encode("utf-8"), bytes.fromhex(salt_hex), _PBKDF2_ROUNDS
    )
    return digest.hex()


def get_password_hash(password: str) -> str:
    salt_hex = secrets.token_hex(16)
    return f"{salt_hex}${_hash(password, salt_hex)}"


def verify_password(password: str, hashed_password: str) -> bool:
    salt_hex, _, expected = (hashed_password or "").partition("$")
    if not salt_hex or not expected:
        return False
    return hmac.compare_digest(_hash(password, salt_hex), expected)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    payload = dict(data)
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload["exp"] = expire
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> models.User:
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized
    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.PyJWTError:
        raise unauthorized
    email = payload.get("sub")
    if not email:
        raise unauthorized
    user = db.query(models.User).filter(models.User.email == email).first()
    if user is None or not user.is_active:
        raise unauthorized
    return user
