"""Persistence for IBC applications and their research activity links."""

from __future__ import annotations

import logging
from typing import Sequence
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, joinedload

from .. import audit, models, schemas
from . import applications

logger = logging.getLogger(__name__)

KIND = "ibc"
NUMBER_PREFIX = "IBC"
SUB_RECORD_FIELDS = ("cellLines", "hazardousProcedures", "syntheticExperiments")
SUB_RECORD_REFERENCES = {"hazardousProcedures": ("cellLineId", "cellLines")}

# wire names stored as columns rather than inside form_data
_COLUMN_FIELDS = ("title", "principalInvestigatorId", "biosafetyLevel", "protocolTeamMembers")


def _risk_level(biosafety_level: str) -> str:
    return schemas.RISK_LEVEL_BY_BIOSAFETY_LEVEL.get(biosafety_level, "moderate")


def _split_columns(data: dict) -> tuple[dict, dict]:
    columns = {key: data.pop(key) for key in _COLUMN_FIELDS if key in data}
    return columns, data


def get_application_or_404(db: Session, application_id: UUID) -> models.IbcApplication:
    application = (
        db.query(models.IbcApplication)
        .options(
            joinedload(models.IbcApplication.principal_investigator),
            joinedload(models.IbcApplication.research_activity_links).joinedload(
                models.IbcApplicationResearchActivity.research_activity
            ),
        )
        .filter(models.IbcApplication.id == application_id)
        .first()
    )
    if application is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="IBC application not found")
    return application


def list_applications(db: Session, status_filter: str | None = None) -> Sequence[models.IbcApplication]:
    query = db.query(models.IbcApplication).options(
        joinedload(models.IbcApplication.principal_investigator)
    )
    if status_filter:
        query = query.filter(models.IbcApplication.status == status_filter)
    return query.order_by(models.IbcApplication.updated_at.desc()).all()


def serialize(application: models.IbcApplication) -> schemas.IbcApplicationOut:
    pi = application.principal_investigator
    data = dict(application.form_data or {})
    data.update(
        {
            "id": application.id,
            "ibcNumber": application.ibc_number,
            "title": application.title,
            "principalInvestigatorId": application.principal_investigator_id,
            "biosafetyLevel": application.biosafety_level,
            "riskLevel": application.risk_level,
            "status": application.status,
            "submissionType": application.submission_type,
            "version": application.version,
            "submissionDate": application.submission_date,
            "underReviewDate": application.under_review_date,
            "approvalDate": application.approval_date,
            "createdAt": application.created_at,
            "updatedAt": application.updated_at,
            "protocolTeamMembers": list(application.protocol_team_members or []),
            "principalInvestigator": schemas.ScientistSummary.model_validate(pi) if pi else None,
            "researchActivities": [
                schemas.ResearchActivitySummary.model_validate(link.research_activity)
                for link in application.research_activity_links
            ],
        }
    )
    return schemas.IbcApplicationOut.model_validate(data)


def serialize_list_item(application: models.IbcApplication) -> schemas.IbcApplicationListItem:
    pi = application.principal_investigator
    return schemas.IbcApplicationListItem(
        id=application.id,
        ibc_number=application.ibc_number,
        title=application.title,
        status=application.status,
        biosafety_level=application.biosafety_level,
        principal_investigator=schemas.ScientistSummary.model_validate(pi) if pi else None,
        updated_at=application.updated_at,
    )


def create_application(
    db: Session,
    payload: schemas.IbcApplicationCreate,
    user: models.User,
) -> models.IbcApplication:
    """Create an application as a draft or straight into ``submitted``."""

    applications.ensure_scientist(db, payload.principal_investigator_id, "Principal investigator")
    activities = applications.ensure_research_activities(db, payload.research_activity_ids)

    data = payload.model_dump(mode="json", by_alias=True, exclude={"research_activity_ids", "is_draft"})
    columns, form_data = _split_columns(data)
    applications.persist_sub_records(form_data, SUB_RECORD_FIELDS, references=SUB_RECORD_REFERENCES)
    team = columns.get("protocolTeamMembers") or []
    applications.assign_server_ids(team)

    application = models.IbcApplication(
        ibc_number=applications.next_application_number(
            db, models.IbcApplication.ibc_number, NUMBER_PREFIX
        ),
        title=columns["title"],
        principal_investigator_id=payload.principal_investigator_id,
        biosafety_level=columns.get("biosafetyLevel") or "BSL-2",
        risk_level=_risk_level(columns.get("biosafetyLevel") or "BSL-2"),
        status="draft",
        form_data=form_data,
        protocol_team_members=team,
        created_by=user.id,
    )
    db.add(application)
    db.flush()
    for activity in activities:
        db.add(
            models.IbcApplicationResearchActivity(
                ibc_application_id=application.id, research_activity_id=activity.id
            )
        )
    if not payload.is_draft:
        applications.status_for_draft_flag(application, False)
        applications.transition(db, application, KIND, "submitted")
    audit.log_action(
        db,
        user.id,
        "ibc_application.create",
        "ibc_application",
        application.id,
        {"status": application.status, "ibc_number": application.ibc_number},
        commit=False,
    )
    logger.info("created IBC application %s (%s)", application.ibc_number, application.status)
    return application


def update_application(
    db: Session,
    application: models.IbcApplication,
    payload: schemas.IbcApplicationUpdate,
    user: models.User,
) -> models.IbcApplication:
    """Apply a PATCH body; ``isDraft`` picks between ``draft`` and ``submitted``."""

    changes = applications.provided_fields(payload, exclude={"is_draft"})
    columns, form_changes = _split_columns(changes)

    if "principalInvestigatorId" in columns:
        pi_id = payload.principal_investigator_id
        applications.ensure_scientist(db, pi_id, "Principal investigator")
        application.principal_investigator_id = pi_id
    if "title" in columns:
        application.title = columns["title"]
    if "biosafetyLevel" in columns:
        application.biosafety_level = columns["biosafetyLevel"]
        application.risk_level = _risk_level(columns["biosafetyLevel"])
    if "protocolTeamMembers" in columns:
        team = columns["protocolTeamMembers"] or []
        applications.assign_server_ids(team)
        application.protocol_team_members = team

    if form_changes:
        form_data = dict(application.form_data or {})
        form_data.update(form_changes)
        applications.persist_sub_records(form_data, SUB_RECORD_FIELDS, references=SUB_RECORD_REFERENCES)
        application.form_data = form_data

    requested = applications.status_for_draft_flag(application, payload.is_draft)
    if requested is not None:
        applications.transition(db, application, KIND, requested)

    action = "ibc_application.submit" if requested == "submitted" else "ibc_application.update"
    audit.log_action(
        db,
        user.id,
        action,
        "ibc_application",
        application.id,
        {"fields": sorted(changes), "status": application.status},
        commit=False,
    )
    return application


def link_research_activity(
    db: Session, application: models.IbcApplication, research_activity_id: UUID
) -> models.IbcApplicationResearchActivity:
    (activity,) = applications.ensure_research_activities(db, [research_activity_id])
    existing = (
        db.query(models.IbcApplicationResearchActivity)
        .filter(
            models.IbcApplicationResearchActivity.ibc_application_id == application.id,
            models.IbcApplicationResearchActivity.research_activity_id == activity.id,
        )
        .first()
    )
    if existing is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Research activity already linked to this IBC application",
        )
    link = models.IbcApplicationResearchActivity(
        ibc_application_id=application.id, research_activity_id=activity.id
    )
    db.add(link)
    return link


def unlink_research_activity(db: Session, application: models.IbcApplication, research_activity_id: UUID) -> None:
    link = (
        db.query(models.IbcApplicationResearchActivity)
        .filter(
            models.IbcApplicationResearchActivity.ibc_application_id == application.id,
            models.IbcApplicationResearchActivity.research_activity_id == research_activity_id,
        )
        .first()
    )
    if link is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Research activity not linked to this IBC application",
        )
    db.delete(link)
