"""Schemas for PMO research activity plans (RA-200 form)."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from .common import (
    ApplicationWorkflowFields,
    CamelModel,
    ScientistSummary,
    TeamMember,
    decode_team_members,
)

CORE_LAB_OPTIONS = (
    "Genomics Core",
    "Omics Core",
    "Microscopy Core",
    "Flow Core",
    "Mass Spec Core",
    "Zebrafish Facility Core",
    "Advanced Cell Therapy Core",
    "Applied Bioinformatics Core",
    "Computational & Informatics Core",
    "Pathology",
    "Research Contracts Office",
    "Research Scientific Data Management",
    "Grants Office",
)


class EthicsRequirements(CamelModel):
    human_subjects: bool = False
    irb_needed: bool = False
    animal_samples: bool = False
    iacuc_needed: bool = False
    clinical_trial: bool = False


class CollaborationRequirements(CamelModel):
    outside_collaborators: bool = False
    data_sharing: bool = False


class BudgetRequirements(CamelModel):
    no_cost: bool = False
    external_funding: bool = False
    institutional_budget: bool = False


class SampleDataProcessing(CamelModel):
    collaboration_with_pi: bool = Field(False, alias="collaborationWithPI")
    core_facilities: bool = False


class Collaborator(CamelModel):
    id: str | None = None
    name: str = ""
    institution: str = ""
    email: str = ""
    contribution: str = ""


class PmoApplicationSections(CamelModel):
    # header
    title: str = ""
    lead_scientist_id: UUID | None = None
    budget_holder_id: UUID | None = None
    budget_source: str = ""
    duration_months: int | None = None

    # research activity details
    abstract: str = ""
    background_rationale: str = ""
    objectives_preliminary: str = ""
    approach_methods: str = ""
    discussion_conclusion: str = ""

    # requirements
    ethics_requirements: EthicsRequirements = Field(default_factory=EthicsRequirements)
    irb_protocol_number: str = ""
    iacuc_protocol_number: str = ""
    collaboration_requirements: CollaborationRequirements = Field(
        default_factory=CollaborationRequirements
    )
    collaborators: list[Collaborator] = Field(default_factory=list)
    data_sharing_plan: str = ""
    budget_requirements: BudgetRequirements = Field(default_factory=BudgetRequirements)
    external_funding_source: str = ""
    sample_data_processing: SampleDataProcessing = Field(default_factory=SampleDataProcessing)
    core_labs: list[str] = Field(default_factory=list)
    core_lab_justification: str = ""

    # detailed methods
    study_design_methods: str = ""
    proposal_objectives: str = ""
    preliminary_data: str = ""


class PmoApplicationPayload(PmoApplicationSections):
    research_activity_id: UUID | None = None
    protocol_team_members: list[TeamMember] = Field(default_factory=list)

    @field_validator("protocol_team_members", mode="before")
    @classmethod
    def _decode_legacy_team_members(cls, value):
        return decode_team_members(value)


class PmoApplicationCreate(PmoApplicationPayload):
    is_draft: bool = False

    @model_validator(mode="after")
    def _require_identity(self) -> "PmoApplicationCreate":
        if not self.title.strip():
            raise ValueError("Title is required")
        if self.lead_scientist_id is None:
            raise ValueError("Lead scientist is required")
        return self


class PmoApplicationUpdate(PmoApplicationPayload):
    is_draft: bool | None = None


class PmoApplicationOut(ApplicationWorkflowFields, PmoApplicationPayload):
    application_number: str
    lead_scientist: ScientistSummary | None = None


class PmoApplicationListItem(CamelModel):
    id: UUID
    application_number: str
    title: str
    status: str
    lead_scientist: ScientistSummary | None = None
    updated_at: datetime


class PmoApplicationForm(PmoApplicationSections):
    research_activity_id: UUID | None = None
    team_members: list[TeamMember] = Field(default_factory=list)
    submission_comment: str = ""
    selected_member: str | None = None
    selected_roles: list[str] = Field(default_factory=list)


class PmoSubmissionForm(PmoApplicationForm):
    @field_validator("title")
    @classmethod
    def _title_length(cls, value: str) -> str:
        if len(value.strip()) < 5:
            raise ValueError("Title must be at least 5 characters")
        return value

    @field_validator("lead_scientist_id")
    @classmethod
    def _lead_scientist_selected(cls, value: UUID | None) -> UUID | None:
        if value is None:
            raise ValueError("Please select a lead scientist")
        return value

    @field_validator("duration_months")
    @classmethod
    def _duration_in_range(cls, value: int | None) -> int | None:
        if value is None or not 1 <= value <= 60:
            raise ValueError("Duration must be between 1 and 60 months")
        return value

    @field_validator("abstract")
    @classmethod
    def _abstract_present(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Abstract is required")
        return value
