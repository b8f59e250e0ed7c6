"""Persistence for PMO research activity plans."""

from __future__ import annotations

import logging
from typing import Sequence
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, joinedload

from .. import audit, models, schemas
from . import applications

logger = logging.getLogger(__name__)

KIND = "pmo"
NUMBER_PREFIX = "PMO"
SUB_RECORD_FIELDS = ("collaborators",)

_COLUMN_FIELDS = ("title", "leadScientistId", "researchActivityId", "protocolTeamMembers")


def _split_columns(data: dict) -> tuple[dict, dict]:
    columns = {key: data.pop(key) for key in _COLUMN_FIELDS if key in data}
    return columns, data


def get_application_or_404(db: Session, application_id: UUID) -> models.PmoApplication:
    application = (
        db.query(models.PmoApplication)
        .options(joinedload(models.PmoApplication.lead_scientist))
        .filter(models.PmoApplication.id == application_id)
        .first()
    )
    if application is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="PMO application not found")
    return application


def list_applications(
    db: Session,
    status_filter: str | None = None,
    research_activity_id: UUID | None = None,
) -> Sequence[models.PmoApplication]:
    query = db.query(models.PmoApplication).options(joinedload(models.PmoApplication.lead_scientist))
    if status_filter:
        query = query.filter(models.PmoApplication.status == status_filter)
    if research_activity_id:
        query = query.filter(models.PmoApplication.research_activity_id == research_activity_id)
    return query.order_by(models.PmoApplication.updated_at.desc()).all()


def serialize(application: models.PmoApplication) -> schemas.PmoApplicationOut:
    lead = application.lead_scientist
    data = dict(application.form_data or {})
    data.update(
        {
            "id": application.id,
            "applicationNumber": application.application_number,
            "title": application.title,
            "leadScientistId": application.lead_scientist_id,
            "researchActivityId": application.research_activity_id,
            "status": application.status,
            "submissionDate": application.submission_date,
            "underReviewDate": application.under_review_date,
            "approvalDate": application.approval_date,
            "createdAt": application.created_at,
            "updatedAt": application.updated_at,
            "protocolTeamMembers": list(application.protocol_team_members or []),
            "leadScientist": schemas.ScientistSummary.model_validate(lead) if lead else None,
        }
    )
    return schemas.PmoApplicationOut.model_validate(data)


def serialize_list_item(application: models.PmoApplication) -> schemas.PmoApplicationListItem:
    lead = application.lead_scientist
    return schemas.PmoApplicationListItem(
        id=application.id,
        application_number=application.application_number,
        title=application.title,
        status=application.status,
        lead_scientist=schemas.ScientistSummary.model_validate(lead) if lead else None,
        updated_at=application.updated_at,
    )


def create_application(
    db: Session,
    payload: schemas.PmoApplicationCreate,
    user: models.User,
) -> models.PmoApplication:
    applications.ensure_scientist(db, payload.lead_scientist_id, "Lead scientist")
    if payload.research_activity_id is not None:
        applications.ensure_research_activities(db, [payload.research_activity_id])

    data = payload.model_dump(mode="json", by_alias=True, exclude={"is_draft"})
    columns, form_data = _split_columns(data)
    applications.persist_sub_records(form_data, SUB_RECORD_FIELDS)
    team = columns.get("protocolTeamMembers") or []
    applications.assign_server_ids(team)

    application = models.PmoApplication(
        application_number=applications.next_application_number(
            db, models.PmoApplication.application_number, NUMBER_PREFIX
        ),
        title=columns["title"],
        lead_scientist_id=payload.lead_scientist_id,
        research_activity_id=payload.research_activity_id,
        status="draft",
        form_data=form_data,
        protocol_team_members=team,
        created_by=user.id,
    )
    db.add(application)
    db.flush()
    if not payload.is_draft:
        applications.status_for_draft_flag(application, False)
        applications.transition(db, application, KIND, "submitted")
    audit.log_action(
        db,
        user.id,
        "pmo_application.create",
        "pmo_application",
        application.id,
        {"status": application.status, "application_number": application.application_number},
        commit=False,
    )
    logger.info("created PMO application %s (%s)", application.application_number, application.status)
    return application


def update_application(
    db: Session,
    application: models.PmoApplication,
    payload: schemas.PmoApplicationUpdate,
    user: models.User,
) -> models.PmoApplication:
    changes = applications.provided_fields(payload, exclude={"is_draft"})
    columns, form_changes = _split_columns(changes)

    if "leadScientistId" in columns:
        applications.ensure_scientist(db, payload.lead_scientist_id, "Lead scientist")
        application.lead_scientist_id = payload.lead_scientist_id
    if "researchActivityId" in columns:
        if payload.research_activity_id is not None:
            applications.ensure_research_activities(db, [payload.research_activity_id])
        application.research_activity_id = payload.research_activity_id
    if "title" in columns:
        application.title = columns["title"]
    if "protocolTeamMembers" in columns:
        team = columns["protocolTeamMembers"] or []
        applications.assign_server_ids(team)
        application.protocol_team_members = team

    if form_changes:
        form_data = dict(application.form_data or {})
        form_data.update(form_changes)
        applications.persist_sub_records(form_data, SUB_RECORD_FIELDS)
        application.form_data = form_data

    requested = applications.status_for_draft_flag(application, payload.is_draft)
    if requested is not None:
        applications.transition(db, application, KIND, requested)

    action = "pmo_application.submit" if requested == "submitted" else "pmo_application.update"
    audit.log_action(
        db,
        user.id,
        action,
        "pmo_application",
        application.id,
        {"fields": sorted(changes), "status": application.status},
        commit=False,
    )
    return application
