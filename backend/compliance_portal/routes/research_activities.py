from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from .. import models, schemas

router = APIRouter(prefix="/api/research-activities", tags=["research-activities"])


def _get_activity_or_404(db: Session, activity_id: UUID) -> models.ResearchActivity:
    activity = db.get(models.ResearchActivity, activity_id)
    if not activity:
        raise HTTPException(status_code=404, detail="Research activity not found")
    return activity


@router.get("", response_model=list[schemas.ResearchActivityOut])
async def list_research_activities(
    principal_investigator_id: UUID | None = Query(None, alias="principalInvestigatorId"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    q = db.query(models.ResearchActivity)
    if principal_investigator_id:
        q = q.filter(models.ResearchActivity.principal_investigator_id == principal_investigator_id)
    return q.order_by(models.ResearchActivity.sdr_number.asc()).all()


@router.post("", response_model=schemas.ResearchActivityOut, status_code=status.HTTP_201_CREATED)
async def create_research_activity(
    payload: schemas.ResearchActivityCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    duplicate = (
        db.query(models.ResearchActivity)
        .filter(models.ResearchActivity.sdr_number == payload.sdr_number)
        .first()
    )
    if duplicate:
        raise HTTPException(status_code=409, detail="SDR number already exists")
    if payload.principal_investigator_id and not db.get(models.Scientist, payload.principal_investigator_id):
        raise HTTPException(status_code=404, detail="Principal investigator not found")
    activity = models.ResearchActivity(**payload.model_dump())
    db.add(activity)
    db.commit()
    db.refresh(activity)
    return activity


@router.get("/{activity_id}/staff", response_model=list[schemas.PersonnelOut])
async def list_staff(
    activity_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    activity = _get_activity_or_404(db, activity_id)
    return [
        schemas.PersonnelOut(
            id=str(member.scientist_id),
            scientist_id=member.scientist_id,
            scientist=schemas.ScientistOut.model_validate(member.scientist),
        )
        for member in activity.staff
    ]


@router.post("/{activity_id}/staff", response_model=schemas.PersonnelOut, status_code=status.HTTP_201_CREATED)
async def add_staff(
    activity_id: UUID,
    payload: schemas.StaffAssignment,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    activity = _get_activity_or_404(db, activity_id)
    scientist = db.get(models.Scientist, payload.scientist_id)
    if not scientist:
        raise HTTPException(status_code=404, detail="Scientist not found")
    if any(member.scientist_id == scientist.id for member in activity.staff):
        raise HTTPException(status_code=409, detail="Scientist already assigned")
    db.add(
        models.ResearchActivityStaff(
            research_activity_id=activity.id, scientist_id=scientist.id, role=payload.role
        )
    )
    db.commit()
    return schemas.PersonnelOut(
        id=str(scientist.id),
        scientist_id=scientist.id,
        scientist=schemas.ScientistOut.model_validate(scientist),
    )
