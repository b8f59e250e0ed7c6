from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from .. import audit, models, rbac, schemas
from ..services import applications, change_requests

router = APIRouter(prefix="/api/change-requests", tags=["change-requests"])


@router.get("", response_model=list[schemas.ChangeRequestListItem])
async def list_change_requests(
    status_filter: str | None = Query(None, alias="status"),
    research_activity_id: UUID | None = Query(None, alias="researchActivityId"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    items = change_requests.list_change_requests(db, status_filter, research_activity_id)
    return [change_requests.serialize_list_item(item) for item in items]


@router.post("", response_model=schemas.ChangeRequestOut, status_code=status.HTTP_201_CREATED)
async def create_change_request(
    payload: schemas.ChangeRequestCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    change_request = change_requests.create_change_request(db, payload, user)
    db.commit()
    return change_requests.serialize(change_requests.get_change_request_or_404(db, change_request.id))


@router.get("/{change_request_id}", response_model=schemas.ChangeRequestOut)
async def get_change_request(
    change_request_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return change_requests.serialize(change_requests.get_change_request_or_404(db, change_request_id))


@router.patch("/{change_request_id}", response_model=schemas.ChangeRequestOut)
async def update_change_request(
    change_request_id: UUID,
    payload: schemas.ChangeRequestUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    change_request = change_requests.get_change_request_or_404(db, change_request_id)
    change_requests.update_change_request(db, change_request, payload, user)
    db.commit()
    db.refresh(change_request)
    return change_requests.serialize(change_request)


@router.get("/{change_request_id}/comments", response_model=list[schemas.CommentOut])
async def list_change_request_comments(
    change_request_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    change_requests.get_change_request_or_404(db, change_request_id)
    return applications.list_comments(db, change_requests.KIND, change_request_id)


@router.post(
    "/{change_request_id}/comments",
    response_model=schemas.CommentOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_change_request_comment(
    change_request_id: UUID,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    change_requests.get_change_request_or_404(db, change_request_id)
    comment = applications.add_applicant_comment(
        db,
        change_requests.KIND,
        change_request_id,
        payload,
        author_name=user.full_name or user.email,
        author_id=user.id,
    )
    db.commit()
    db.refresh(comment)
    return comment


@router.post("/{change_request_id}/reviewer-feedback", response_model=schemas.ReviewerFeedbackOut)
async def submit_change_request_feedback(
    change_request_id: UUID,
    payload: schemas.ReviewerFeedback,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    rbac.require_reviewer(user)
    change_request = change_requests.get_change_request_or_404(db, change_request_id)
    new_status = applications.record_reviewer_feedback(db, change_requests.KIND, change_request, payload, user)
    audit.log_action(
        db,
        user.id,
        "change_request.review",
        "change_request",
        change_request.id,
        {"recommendation": payload.recommendation, "status": new_status},
        commit=False,
    )
    db.commit()
    return schemas.ReviewerFeedbackOut(message="Reviewer feedback submitted successfully", status=new_status)
