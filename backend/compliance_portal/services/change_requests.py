"""Persistence for research activity change requests."""

from __future__ import annotations

import logging
from typing import Sequence
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, joinedload

from .. import audit, models, schemas
from . import applications

logger = logging.getLogger(__name__)

KIND = "change_request"
NUMBER_PREFIX = "RA205A"

_COLUMN_FIELDS = ("researchActivityId", "newPiId")


def _split_columns(data: dict) -> tuple[dict, dict]:
    columns = {key: data.pop(key) for key in _COLUMN_FIELDS if key in data}
    return columns, data


def _snapshot_activity(request: models.ChangeRequest, activity: models.ResearchActivity) -> None:
    request.research_activity_id = activity.id
    request.sdr_number = activity.sdr_number
    request.current_title = activity.title
    request.current_pi_id = activity.principal_investigator_id


def effective_title(request: models.ChangeRequest) -> str:
    """The title the activity will carry once the request is approved."""

    new_title = ((request.form_data or {}).get("newTitle") or "").strip()
    return new_title or request.current_title


def get_change_request_or_404(db: Session, change_request_id: UUID) -> models.ChangeRequest:
    request = (
        db.query(models.ChangeRequest)
        .options(
            joinedload(models.ChangeRequest.research_activity),
            joinedload(models.ChangeRequest.current_pi),
            joinedload(models.ChangeRequest.new_pi),
        )
        .filter(models.ChangeRequest.id == change_request_id)
        .first()
    )
    if request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Change request not found")
    return request


def list_change_requests(
    db: Session,
    status_filter: str | None = None,
    research_activity_id: UUID | None = None,
) -> Sequence[models.ChangeRequest]:
    query = db.query(models.ChangeRequest)
    if status_filter:
        query = query.filter(models.ChangeRequest.status == status_filter)
    if research_activity_id:
        query = query.filter(models.ChangeRequest.research_activity_id == research_activity_id)
    return query.order_by(models.ChangeRequest.updated_at.desc()).all()


def _summary(scientist: models.Scientist | None) -> schemas.ScientistSummary | None:
    return schemas.ScientistSummary.model_validate(scientist) if scientist else None


def serialize(request: models.ChangeRequest) -> schemas.ChangeRequestOut:
    activity = request.research_activity
    data = dict(request.form_data or {})
    data.update(
        {
            "id": request.id,
            "changeRequestNumber": request.change_request_number,
            "title": request.title,
            "researchActivityId": request.research_activity_id,
            "sdrNumber": request.sdr_number,
            "currentTitle": request.current_title,
            "currentPiId": request.current_pi_id,
            "newPiId": request.new_pi_id,
            "status": request.status,
            "submissionDate": request.submission_date,
            "underReviewDate": request.under_review_date,
            "approvalDate": request.approval_date,
            "createdAt": request.created_at,
            "updatedAt": request.updated_at,
            "currentPi": _summary(request.current_pi),
            "newPi": _summary(request.new_pi),
            "researchActivity": (
                schemas.ResearchActivitySummary.model_validate(activity) if activity else None
            ),
        }
    )
    return schemas.ChangeRequestOut.model_validate(data)


def serialize_list_item(request: models.ChangeRequest) -> schemas.ChangeRequestListItem:
    return schemas.ChangeRequestListItem(
        id=request.id,
        change_request_number=request.change_request_number,
        title=request.title,
        sdr_number=request.sdr_number,
        status=request.status,
        updated_at=request.updated_at,
    )


def create_change_request(
    db: Session,
    payload: schemas.ChangeRequestCreate,
    user: models.User,
) -> models.ChangeRequest:
    (activity,) = applications.ensure_research_activities(db, [payload.research_activity_id])
    if payload.new_pi_id is not None:
        applications.ensure_scientist(db, payload.new_pi_id, "New PI")

    data = payload.model_dump(mode="json", by_alias=True, exclude={"is_draft"})
    _, form_data = _split_columns(data)

    request = models.ChangeRequest(
        change_request_number=applications.next_application_number(
            db, models.ChangeRequest.change_request_number, NUMBER_PREFIX
        ),
        new_pi_id=payload.new_pi_id,
        status="draft",
        form_data=form_data,
        created_by=user.id,
    )
    _snapshot_activity(request, activity)
    request.title = effective_title(request)
    db.add(request)
    db.flush()
    if not payload.is_draft:
        applications.status_for_draft_flag(request, False)
        applications.transition(db, request, KIND, "submitted")
    audit.log_action(
        db,
        user.id,
        "change_request.create",
        "change_request",
        request.id,
        {"status": request.status, "change_request_number": request.change_request_number},
        commit=False,
    )
    logger.info(
        "created change request %s for %s (%s)", request.change_request_number, request.sdr_number, request.status
    )
    return request


def update_change_request(
    db: Session,
    request: models.ChangeRequest,
    payload: schemas.ChangeRequestUpdate,
    user: models.User,
) -> models.ChangeRequest:
    changes = applications.provided_fields(payload, exclude={"is_draft"})
    columns, form_changes = _split_columns(changes)

    if "researchActivityId" in columns:
        if payload.research_activity_id is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please select an existing SDR")
        if payload.research_activity_id != request.research_activity_id:
            (activity,) = applications.ensure_research_activities(db, [payload.research_activity_id])
            _snapshot_activity(request, activity)
    if "newPiId" in columns:
        if payload.new_pi_id is not None:
            applications.ensure_scientist(db, payload.new_pi_id, "New PI")
        request.new_pi_id = payload.new_pi_id

    if form_changes:
        form_data = dict(request.form_data or {})
        form_data.update(form_changes)
        request.form_data = form_data
    request.title = effective_title(request)

    requested = applications.status_for_draft_flag(request, payload.is_draft)
    if requested is not None:
        applications.transition(db, request, KIND, requested)

    action = "change_request.submit" if requested == "submitted" else "change_request.update"
    audit.log_action(
        db,
        user.id,
        action,
        "change_request",
        request.id,
        {"fields": sorted(changes), "status": request.status},
        commit=False,
    )
    return request
