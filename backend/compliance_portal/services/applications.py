"""Workflow helpers shared by the IBC, PMO and change request services."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence
from uuid import UUID, uuid4

from fastapi import HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .. import models, schemas
from ..schemas.common import TEMP_ID_PREFIX

logger = logging.getLogger(__name__)

# purpose: keep status flag handling, numbering and the comment timeline identical across variants
# status: active

STATUS_LABELS = {
    "draft": "Draft",
    "submitted": "Submitted",
    "under_review": "Under Review",
    "revision_requested": "Revision Requested",
    "approved": "Approved",
    "rejected": "Rejected",
}

_RECOMMENDATION_OUTCOMES: dict[str, tuple[str, str]] = {
    "approve": ("approved", "Application approved by reviewer"),
    "reject": ("rejected", "Application rejected by reviewer"),
    "minor_revisions": ("revision_requested", "Application returned for minor revisions"),
    "major_revisions": ("revision_requested", "Application returned for major revisions"),
}
_DEFAULT_OUTCOME = ("under_review", "Application remains under review")

_NUMBER_SUFFIX = re.compile(r"-(\d+)$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_application_number(db: Session, column, prefix: str) -> str:
    """Return the next ``<prefix>-<year>-<nnn>`` identifier for the current year."""

    base = f"{prefix}-{_utcnow().year}-"
    highest = 0
    for (value,) in db.query(column).filter(column.like(f"{base}%")).all():
        match = _NUMBER_SUFFIX.search(value or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{base}{highest + 1:03d}"


def provided_fields(payload: BaseModel, exclude: Iterable[str] = ()) -> dict[str, Any]:
    """Dump only the top-level fields the client sent, keyed by wire alias.

    Nested objects are dumped whole so a partial nested body still stores a
    complete section.
    """

    skipped = set(exclude)
    dumped = payload.model_dump(mode="json", by_alias=True)
    fields = type(payload).model_fields
    result: dict[str, Any] = {}
    for name in payload.model_fields_set:
        if name in skipped:
            continue
        alias = fields[name].alias or name
        result[alias] = dumped[alias]
    return result


def _is_temporary(record_id: Any) -> bool:
    return not record_id or str(record_id).startswith(TEMP_ID_PREFIX)


def assign_server_ids(records: Sequence[dict[str, Any]] | None) -> dict[str, str]:
    """Replace temporary sub-record ids in place; return ``{old_id: new_id}``."""

    remapped: dict[str, str] = {}
    for record in records or []:
        current = record.get("id")
        if _is_temporary(current):
            new_id = str(uuid4())
            if current:
                remapped[str(current)] = new_id
            record["id"] = new_id
    return remapped


def persist_sub_records(
    form_data: dict[str, Any],
    list_fields: Iterable[str],
    *,
    references: dict[str, tuple[str, str]] | None = None,
) -> None:
    """Mint server ids for every listed array field and rewrite references to them.

    ``references`` maps a referencing array field to ``(reference_key,
    referenced_array_field)``, e.g. hazardous procedures pointing at cell lines.
    """

    remapped_by_field = {field: assign_server_ids(form_data.get(field)) for field in list_fields}
    for field, (key, target_field) in (references or {}).items():
        remapped = remapped_by_field.get(target_field) or {}
        if not remapped:
            continue
        for record in form_data.get(field) or []:
            ref = record.get(key)
            if ref in remapped:
                record[key] = remapped[ref]


def status_for_draft_flag(record, is_draft: bool | None) -> str | None:
    """Translate the ``isDraft`` flag into the status it requests, if any."""

    if is_draft is None:
        return None
    if is_draft:
        return "draft"
    if record.submission_date is None:
        record.submission_date = _utcnow()
    return "submitted"


def transition(
    db: Session,
    record,
    kind: str,
    new_status: str,
    *,
    note: str | None = None,
) -> models.ApplicationComment | None:
    """Move ``record`` to ``new_status`` and append a status-change timeline entry."""

    old_status = record.status
    if new_status == old_status:
        return None
    record.status = new_status
    now = _utcnow()
    if new_status == "under_review" and record.under_review_date is None:
        record.under_review_date = now
    if new_status == "approved" and record.approval_date is None:
        record.approval_date = now
    if record.id is None:
        db.flush()
    comment = models.ApplicationComment(
        application_kind=kind,
        application_id=record.id,
        comment_type="status_change",
        author_type="system",
        author_name="System",
        comment=note
        or (
            f"Status changed from {STATUS_LABELS.get(old_status, old_status)} "
            f"to {STATUS_LABELS.get(new_status, new_status)}"
        ),
        status_from=old_status,
        status_to=new_status,
        is_internal=False,
    )
    db.add(comment)
    logger.info("%s application %s moved %s -> %s", kind, record.id, old_status, new_status)
    return comment


def list_comments(db: Session, kind: str, application_id: UUID) -> list[models.ApplicationComment]:
    return (
        db.query(models.ApplicationComment)
        .filter(
            models.ApplicationComment.application_kind == kind,
            models.ApplicationComment.application_id == application_id,
        )
        .order_by(models.ApplicationComment.created_at.asc())
        .all()
    )


def add_applicant_comment(
    db: Session,
    kind: str,
    application_id: UUID,
    payload: schemas.CommentCreate,
    *,
    author_name: str,
    author_id: UUID | None = None,
) -> models.ApplicationComment:
    """Append an applicant-authored entry to the timeline."""

    text = (payload.comment or "").strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Comment is required")
    comment = models.ApplicationComment(
        application_kind=kind,
        application_id=application_id,
        comment_type=payload.comment_type,
        author_type="pi",
        author_name=author_name,
        author_id=author_id,
        comment=text,
        is_internal=False,
    )
    db.add(comment)
    return comment


def record_reviewer_feedback(
    db: Session,
    kind: str,
    record,
    feedback: schemas.ReviewerFeedback,
    reviewer: models.User,
) -> str:
    """Store reviewer feedback and apply the status its recommendation implies."""

    db.add(
        models.ApplicationComment(
            application_kind=kind,
            application_id=record.id,
            comment_type="reviewer_feedback",
            author_type="reviewer",
            author_name=reviewer.full_name or reviewer.email,
            author_id=reviewer.id,
            comment=feedback.comments.strip(),
            recommendation=feedback.recommendation,
            is_internal=False,
        )
    )
    new_status, note = _RECOMMENDATION_OUTCOMES.get(feedback.recommendation, _DEFAULT_OUTCOME)
    transition(db, record, kind, new_status, note=note)
    return record.status


def ensure_scientist(db: Session, scientist_id: UUID | None, label: str) -> models.Scientist:
    scientist = db.get(models.Scientist, scientist_id) if scientist_id else None
    if scientist is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
    return scientist


def ensure_research_activities(db: Session, activity_ids: Iterable[UUID]) -> list[models.ResearchActivity]:
    activities = []
    for activity_id in activity_ids:
        activity = db.get(models.ResearchActivity, activity_id)
        if activity is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Research activity with ID {activity_id} not found",
            )
        activities.append(activity)
    return activities


def enrich_team_members(db: Session, members: Sequence[dict[str, Any]] | None) -> list[schemas.PersonnelOut]:
    """Attach scientist details to stored protocol team members."""

    personnel = []
    for member in members or []:
        entry = schemas.PersonnelOut.model_validate(member)
        if entry.scientist_id is not None:
            scientist = db.get(models.Scientist, entry.scientist_id)
            if scientist is not None:
                entry.scientist = schemas.ScientistOut.model_validate(scientist)
        personnel.append(entry)
    return personnel
