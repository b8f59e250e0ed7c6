"""Shared building blocks for application form schemas."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# purpose: keep wire payloads camelCase while Python code stays snake_case
# status: active


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# sub-record ids carrying this prefix were minted client-side and are replaced on save
TEMP_ID_PREFIX = "tmp-"

TEAM_ROLES = ("team_member", "team_leader", "safety_representative")
TeamRole = Literal["team_member", "team_leader", "safety_representative"]

REVIEW_RECOMMENDATIONS = ("approve", "reject", "minor_revisions", "major_revisions", "comment")
ReviewRecommendation = Literal["approve", "reject", "minor_revisions", "major_revisions", "comment"]

ApplicationStatus = Literal[
    "draft",
    "submitted",
    "under_review",
    "revision_requested",
    "approved",
    "rejected",
]


class TeamMember(CamelModel):
    """Protocol team member sub-record."""

    id: str | None = None
    scientist_id: UUID | None = None
    role: TeamRole | None = None


def decode_team_members(value: Any) -> Any:
    """Accept the legacy JSON-encoded string form of ``protocolTeamMembers``."""

    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        try:
            value = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError("protocolTeamMembers must be a JSON array") from exc
        if not isinstance(value, list):
            raise ValueError("protocolTeamMembers must be a JSON array")
    return value


class ScientistSummary(CamelModel):
    id: UUID
    name: str
    profile_image_initials: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ResearchActivitySummary(CamelModel):
    id: UUID
    sdr_number: str
    title: str
    status: str

    model_config = ConfigDict(from_attributes=True)


class ApplicationWorkflowFields(CamelModel):
    """Server-owned identity and workflow columns shared by every variant."""

    id: UUID
    status: ApplicationStatus
    submission_date: datetime | None = None
    under_review_date: datetime | None = None
    approval_date: datetime | None = None
    created_at: datetime
    updated_at: datetime


class CommentCreate(CamelModel):
    comment: str
    comment_type: Literal["submission_comment", "pi_response"] = "submission_comment"


class CommentOut(CamelModel):
    id: UUID
    application_id: UUID
    comment_type: str
    author_type: str
    author_name: str | None = None
    author_id: UUID | None = None
    comment: str
    recommendation: str | None = None
    status_from: str | None = None
    status_to: str | None = None
    is_internal: bool = False
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReviewerFeedback(CamelModel):
    comments: str = Field(min_length=1)
    recommendation: ReviewRecommendation


class ReviewerFeedbackOut(CamelModel):
    message: str
    status: ApplicationStatus
