from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from .. import models, schemas

router = APIRouter(prefix="/api", tags=["scientists"])


@router.get("/principal-investigators", response_model=list[schemas.ScientistOut])
async def list_principal_investigators(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return (
        db.query(models.Scientist)
        .filter(models.Scientist.is_principal_investigator.is_(True))
        .order_by(models.Scientist.name.asc())
        .all()
    )


@router.get("/scientists", response_model=list[schemas.ScientistOut])
async def list_scientists(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return db.query(models.Scientist).order_by(models.Scientist.name.asc()).all()


@router.post("/scientists", response_model=schemas.ScientistOut, status_code=status.HTTP_201_CREATED)
async def create_scientist(
    payload: schemas.ScientistCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    scientist = models.Scientist(**payload.model_dump())
    if not scientist.profile_image_initials:
        scientist.profile_image_initials = "".join(
            part[0] for part in payload.name.split() if part
        )[:2].upper()
    db.add(scientist)
    db.commit()
    db.refresh(scientist)
    return scientist
