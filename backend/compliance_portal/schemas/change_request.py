"""Schemas for research activity change requests (RA-205A form)."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import Field, ValidationInfo, field_validator, model_validator

from .common import ApplicationWorkflowFields, CamelModel, ResearchActivitySummary, ScientistSummary

ActivityType = Literal["Human", "Non-Human"]


class ChangeCategory(CamelModel):
    lpi_change: bool = False
    budget_change: bool = False
    title_change: bool = False
    scope_change: bool = False
    other: bool = False
    other_description: str = ""

    def any_selected(self) -> bool:
        return any((self.lpi_change, self.budget_change, self.title_change, self.scope_change, self.other))


class Signature(CamelModel):
    name: str = ""
    date: str = ""
    signature: str = ""


class StakeholderApprovals(CamelModel):
    pmo: Signature = Field(default_factory=Signature)
    research_labs: Signature = Field(default_factory=Signature)
    biosafety: Signature = Field(default_factory=Signature)
    finance: Signature = Field(default_factory=Signature)
    grants: Signature = Field(default_factory=Signature)
    contracts: Signature = Field(default_factory=Signature)
    governance: Signature = Field(default_factory=Signature)
    data_management: Signature = Field(default_factory=Signature)


class ChangeApprovals(CamelModel):
    current_pi: Signature = Field(default_factory=Signature)
    new_pi: Signature = Field(default_factory=Signature)
    stakeholders: StakeholderApprovals = Field(default_factory=StakeholderApprovals)


class ChangeRequestSections(CamelModel):
    # the SDR being changed
    research_activity_id: UUID | None = None
    activity_type: ActivityType = "Human"
    project_id: str = ""

    change_category: ChangeCategory = Field(default_factory=ChangeCategory)
    new_title: str = ""
    change_reason: str = ""
    new_pi_id: UUID | None = None
    budget_source: str = ""

    approvals: ChangeApprovals = Field(default_factory=ChangeApprovals)


class ChangeRequestPayload(ChangeRequestSections):
    pass


class ChangeRequestCreate(ChangeRequestPayload):
    is_draft: bool = False

    @model_validator(mode="after")
    def _require_research_activity(self) -> "ChangeRequestCreate":
        if self.research_activity_id is None:
            raise ValueError("Please select an existing SDR")
        return self


class ChangeRequestUpdate(ChangeRequestPayload):
    is_draft: bool | None = None


class ChangeRequestOut(ApplicationWorkflowFields, ChangeRequestPayload):
    change_request_number: str
    title: str
    sdr_number: str
    current_title: str
    current_pi_id: UUID | None = None
    current_pi: ScientistSummary | None = None
    new_pi: ScientistSummary | None = None
    research_activity: ResearchActivitySummary | None = None


class ChangeRequestListItem(CamelModel):
    id: UUID
    change_request_number: str
    title: str
    sdr_number: str
    status: str
    updated_at: datetime


class ChangeRequestForm(ChangeRequestSections):
    # filled from the server copy; never sent back
    sdr_number: str = ""
    current_title: str = ""
    current_pi_id: UUID | None = None

    submission_comment: str = ""


class ChangeRequestSubmissionForm(ChangeRequestForm):
    @field_validator("research_activity_id")
    @classmethod
    def _sdr_selected(cls, value: UUID | None) -> UUID | None:
        if value is None:
            raise ValueError("Please select an existing SDR")
        return value

    @field_validator("change_category")
    @classmethod
    def _category_selected(cls, value: ChangeCategory) -> ChangeCategory:
        if not value.any_selected():
            raise ValueError("Select at least one change category")
        return value

    @field_validator("new_title")
    @classmethod
    def _new_title_for_title_change(cls, value: str, info: ValidationInfo) -> str:
        category = info.data.get("change_category")
        if category is not None and category.title_change and len(value.strip()) < 5:
            raise ValueError("New title is required when title change is selected")
        return value

    @field_validator("change_reason")
    @classmethod
    def _reason_length(cls, value: str) -> str:
        if len(value.strip()) < 10:
            raise ValueError("Change reason must be at least 10 characters")
        return value

    @field_validator("new_pi_id")
    @classmethod
    def _new_pi_for_lpi_change(cls, value: UUID | None, info: ValidationInfo) -> UUID | None:
        category = info.data.get("change_category")
        if category is not None and category.lpi_change and value is None:
            raise ValueError("Please select the new PI")
        return value
