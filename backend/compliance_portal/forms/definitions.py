"""Per-variant wiring of schemas, tabs, editors and wire mapping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

from pydantic import BaseModel

from ..schemas import (
    ChangeRequestForm,
    ChangeRequestSubmissionForm,
    IbcApplicationForm,
    IbcSubmissionForm,
    PmoApplicationForm,
    PmoSubmissionForm,
)
from ..schemas.common import decode_team_members
from . import editors
from .editors import SubRecordEditor
from .paths import fields_by_alias
from .sections import CHANGE_REQUEST_SECTIONS, IBC_SECTIONS, PMO_SECTIONS, Section
from .state import FormState

EditorFactory = Callable[[FormState], SubRecordEditor]


@dataclass(frozen=True)
class FormDefinition:
    kind: str
    label: str
    values_schema: type[BaseModel]
    submit_schema: type[BaseModel]
    sections: tuple[Section, ...]
    editors: Mapping[str, EditorFactory]
    read_path: str
    # held by the form but never sent to the server
    ui_only_fields: tuple[str, ...] = ("selectedMember", "selectedRoles", "submissionComment")
    # sent only when the application is first created
    create_only_fields: tuple[str, ...] = ()
    # shown on the form, owned by the server
    server_fields: tuple[str, ...] = ()
    team_field: str | None = "teamMembers"
    comment_field: str = "submissionComment"

    def read_url(self, application_id: Any) -> str:
        return self.read_path.format(id=application_id)

    def to_form_values(self, application: Mapping[str, Any]) -> dict[str, Any]:
        """Map a fetched application onto the form's value tree."""

        known = fields_by_alias(self.values_schema)
        values = {key: value for key, value in application.items() if key in known}
        if self.team_field is not None:
            values[self.team_field] = decode_team_members(application.get("protocolTeamMembers"))
        if "researchActivityIds" in known and "researchActivities" in application:
            values["researchActivityIds"] = [
                activity["id"] for activity in application.get("researchActivities") or []
            ]
        return values

    def to_payload(self, values: Mapping[str, Any], *, is_draft: bool, creating: bool = False) -> dict[str, Any]:
        """Build the PATCH (or POST when ``creating``) body from form values."""

        skipped = set(self.ui_only_fields) | set(self.server_fields) | {self.team_field}
        if not creating:
            skipped |= set(self.create_only_fields)
        payload = {key: value for key, value in values.items() if key not in skipped}
        if self.team_field is not None:
            payload["protocolTeamMembers"] = list(values.get(self.team_field) or [])
        payload["isDraft"] = is_draft
        return payload


IBC_FORM = FormDefinition(
    kind="ibc",
    label="IBC application",
    values_schema=IbcApplicationForm,
    submit_schema=IbcSubmissionForm,
    sections=IBC_SECTIONS,
    editors={
        "cellLines": editors.cell_line_editor,
        "hazardousProcedures": editors.hazardous_procedure_editor,
        "syntheticExperiments": editors.synthetic_experiment_editor,
        "teamMembers": editors.team_member_editor,
    },
    read_path="/ibc-applications/{id}",
    create_only_fields=("researchActivityIds",),
)

PMO_FORM = FormDefinition(
    kind="pmo",
    label="PMO application",
    values_schema=PmoApplicationForm,
    submit_schema=PmoSubmissionForm,
    sections=PMO_SECTIONS,
    editors={
        "collaborators": editors.collaborator_editor,
        "teamMembers": editors.team_member_editor,
    },
    read_path="/pmo-applications/{id}",
)

CHANGE_REQUEST_FORM = FormDefinition(
    kind="change_request",
    label="change request",
    values_schema=ChangeRequestForm,
    submit_schema=ChangeRequestSubmissionForm,
    sections=CHANGE_REQUEST_SECTIONS,
    editors={},
    read_path="/change-requests/{id}",
    ui_only_fields=("submissionComment",),
    server_fields=("sdrNumber", "currentTitle", "currentPiId"),
    team_field=None,
)

FORMS = {definition.kind: definition for definition in (IBC_FORM, PMO_FORM, CHANGE_REQUEST_FORM)}
