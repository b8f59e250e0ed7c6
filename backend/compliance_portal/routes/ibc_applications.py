from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from .. import audit, models, rbac, schemas
from ..services import applications, ibc

router = APIRouter(prefix="/api/ibc-applications", tags=["ibc-applications"])


@router.get("", response_model=list[schemas.IbcApplicationListItem])
async def list_ibc_applications(
    status_filter: str | None = Query(None, alias="status"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return [ibc.serialize_list_item(item) for item in ibc.list_applications(db, status_filter)]


@router.post("", response_model=schemas.IbcApplicationOut, status_code=status.HTTP_201_CREATED)
async def create_ibc_application(
    payload: schemas.IbcApplicationCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    application = ibc.create_application(db, payload, user)
    db.commit()
    return ibc.serialize(ibc.get_application_or_404(db, application.id))


@router.get("/{application_id}", response_model=schemas.IbcApplicationOut)
async def get_ibc_application(
    application_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return ibc.serialize(ibc.get_application_or_404(db, application_id))


@router.patch("/{application_id}", response_model=schemas.IbcApplicationOut)
async def update_ibc_application(
    application_id: UUID,
    payload: schemas.IbcApplicationUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    application = ibc.get_application_or_404(db, application_id)
    ibc.update_application(db, application, payload, user)
    db.commit()
    db.refresh(application)
    return ibc.serialize(application)


@router.get("/{application_id}/research-activities", response_model=list[schemas.ResearchActivitySummary])
async def list_linked_research_activities(
    application_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    application = ibc.get_application_or_404(db, application_id)
    return [link.research_activity for link in application.research_activity_links]


@router.post(
    "/{application_id}/research-activities",
    response_model=schemas.ResearchActivitySummary,
    status_code=status.HTTP_201_CREATED,
)
async def link_research_activity(
    application_id: UUID,
    payload: schemas.ResearchActivityLink,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    application = ibc.get_application_or_404(db, application_id)
    ibc.link_research_activity(db, application, payload.research_activity_id)
    db.commit()
    return db.get(models.ResearchActivity, payload.research_activity_id)


@router.delete(
    "/{application_id}/research-activities/{activity_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def unlink_research_activity(
    application_id: UUID,
    activity_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    application = ibc.get_application_or_404(db, application_id)
    ibc.unlink_research_activity(db, application, activity_id)
    db.commit()


@router.get("/{application_id}/personnel", response_model=list[schemas.PersonnelOut])
async def list_personnel(
    application_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    application = ibc.get_application_or_404(db, application_id)
    return applications.enrich_team_members(db, application.protocol_team_members)


@router.get("/{application_id}/comments", response_model=list[schemas.CommentOut])
async def list_ibc_comments(
    application_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    ibc.get_application_or_404(db, application_id)
    return applications.list_comments(db, ibc.KIND, application_id)


@router.post(
    "/{application_id}/comments",
    response_model=schemas.CommentOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_ibc_comment(
    application_id: UUID,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    ibc.get_application_or_404(db, application_id)
    comment = applications.add_applicant_comment(
        db,
        ibc.KIND,
        application_id,
        payload,
        author_name=user.full_name or user.email,
        author_id=user.id,
    )
    db.commit()
    db.refresh(comment)
    return comment


@router.post("/{application_id}/reviewer-feedback", response_model=schemas.ReviewerFeedbackOut)
async def submit_ibc_reviewer_feedback(
    application_id: UUID,
    payload: schemas.ReviewerFeedback,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    rbac.require_reviewer(user)
    application = ibc.get_application_or_404(db, application_id)
    new_status = applications.record_reviewer_feedback(db, ibc.KIND, application, payload, user)
    audit.log_action(
        db,
        user.id,
        "ibc_application.review",
        "ibc_application",
        application.id,
        {"recommendation": payload.recommendation, "status": new_status},
        commit=False,
    )
    db.commit()
    return schemas.ReviewerFeedbackOut(message="Reviewer feedback submitted successfully", status=new_status)
