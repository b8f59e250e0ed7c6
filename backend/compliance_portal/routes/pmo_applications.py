from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from .. import audit, models, rbac, schemas
from ..services import applications, pmo

router = APIRouter(prefix="/api/pmo-applications", tags=["pmo-applications"])


@router.get("", response_model=list[schemas.PmoApplicationListItem])
async def list_pmo_applications(
    status_filter: str | None = Query(None, alias="status"),
    research_activity_id: UUID | None = Query(None, alias="researchActivityId"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    items = pmo.list_applications(db, status_filter, research_activity_id)
    return [pmo.serialize_list_item(item) for item in items]


@router.post("", response_model=schemas.PmoApplicationOut, status_code=status.HTTP_201_CREATED)
async def create_pmo_application(
    payload: schemas.PmoApplicationCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    application = pmo.create_application(db, payload, user)
    db.commit()
    return pmo.serialize(pmo.get_application_or_404(db, application.id))


@router.get("/{application_id}", response_model=schemas.PmoApplicationOut)
async def get_pmo_application(
    application_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return pmo.serialize(pmo.get_application_or_404(db, application_id))


@router.patch("/{application_id}", response_model=schemas.PmoApplicationOut)
async def update_pmo_application(
    application_id: UUID,
    payload: schemas.PmoApplicationUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    application = pmo.get_application_or_404(db, application_id)
    pmo.update_application(db, application, payload, user)
    db.commit()
    db.refresh(application)
    return pmo.serialize(application)


@router.get("/{application_id}/comments", response_model=list[schemas.CommentOut])
async def list_pmo_comments(
    application_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    pmo.get_application_or_404(db, application_id)
    return applications.list_comments(db, pmo.KIND, application_id)


@router.post(
    "/{application_id}/comments",
    response_model=schemas.CommentOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_pmo_comment(
    application_id: UUID,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    pmo.get_application_or_404(db, application_id)
    comment = applications.add_applicant_comment(
        db,
        pmo.KIND,
        application_id,
        payload,
        author_name=user.full_name or user.email,
        author_id=user.id,
    )
    db.commit()
    db.refresh(comment)
    return comment


@router.post("/{application_id}/reviewer-feedback", response_model=schemas.ReviewerFeedbackOut)
async def submit_pmo_reviewer_feedback(
    application_id: UUID,
    payload: schemas.ReviewerFeedback,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    rbac.require_reviewer(user)
    application = pmo.get_application_or_404(db, application_id)
    new_status = applications.record_reviewer_feedback(db, pmo.KIND, application, payload, user)
    audit.log_action(
        db,
        user.id,
        "pmo_application.review",
        "pmo_application",
        application.id,
        {"recommendation": payload.recommendation, "status": new_status},
        commit=False,
    )
    db.commit()
    return schemas.ReviewerFeedbackOut(message="Reviewer feedback submitted successfully", status=new_status)
