from __future__ import annotations

from fastapi import HTTPException

from . import models

# purpose: gate reviewer tooling on the user's portal role
# status: active

REVIEWER_ROLES = ("reviewer", "office")


def is_reviewer(user: models.User) -> bool:
    return bool(user.is_admin) or (user.role or "").lower() in REVIEWER_ROLES


def require_reviewer(user: models.User) -> models.User:
    if not is_reviewer(user):
        raise HTTPException(status_code=403, detail="Not authorized")
    return user


def require_admin(user: models.User) -> models.User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Not authorized")
    return user
