"""Modal-style editors for the array sub-records of a form."""

from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Iterable, Sequence
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from ..schemas import CellLine, Collaborator, HazardousProcedure, SyntheticExperiment, TeamMember
from ..schemas.common import TEMP_ID_PREFIX
from .paths import FieldPath, FieldRef, blank_values, resolve, set_in, to_wire
from .sections import is_populated
from .state import FormState

logger = logging.getLogger(__name__)


class SubRecordValidationError(ValueError):
    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class EditorClosedError(RuntimeError):
    """Raised when an editor operation needs an open draft and there is none."""


@dataclass(frozen=True)
class Requirement:
    field: str
    message: str

    def satisfied_by(self, record: dict[str, Any]) -> bool:
        node: Any = record
        for part in self.field.split("."):
            node = node.get(part) if isinstance(node, dict) else None
        if isinstance(node, str):
            node = node.strip()
        return is_populated(node)


CELL_LINE_REQUIREMENTS = (
    Requirement("name", "Cell line name is required"),
    Requirement("biosafetyLevel", "Biosafety level is required"),
    Requirement("acquisitionSources", "Select at least one acquisition source"),
    Requirement("passage", "Passage is required"),
    Requirement("exposureTypes", "Select at least one exposure type"),
)

HAZARDOUS_PROCEDURE_REQUIREMENTS = (
    Requirement("procedure", "Procedure is required"),
    Requirement("engineeringControls", "Select at least one engineering control"),
    Requirement("ppe", "Select at least one item of personal protective equipment"),
)

SYNTHETIC_EXPERIMENT_REQUIREMENTS = (
    Requirement("backboneSource", "Backbone source is required"),
    Requirement("vectorInsertName", "Vector/insert name is required"),
    Requirement("exposedTo", "Select at least one exposure"),
)

TEAM_MEMBER_REQUIREMENTS = (
    Requirement("scientistId", "Please select a team member"),
    Requirement("role", "Please select a role"),
)

COLLABORATOR_REQUIREMENTS = (
    Requirement("name", "Collaborator name is required"),
    Requirement("institution", "Institution is required"),
)


def new_temporary_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid4().hex}"


def resolve_cell_line(records: Sequence[dict[str, Any]], cell_line_id: str | None) -> dict[str, Any] | None:
    """Find the cell line a hazardous procedure points at; None if it was deleted."""

    if not cell_line_id:
        return None
    return next((record for record in records if record.get("id") == cell_line_id), None)


class SubRecordEditor:
    """Create, edit and delete the records of one array field.

    The array in ``FormState`` is only written by ``save()`` and
    ``confirm_delete()``; a failed save leaves it untouched. Edits and
    deletes remember the record itself rather than its position, so a
    record removed in the meantime (e.g. by the guard clearing its section)
    closes the editor instead of touching a neighbour.
    """

    def __init__(
        self,
        state: FormState,
        path: FieldRef,
        record_schema: type[BaseModel],
        requirements: Iterable[Requirement] = (),
    ):
        self.state = state
        self.path = FieldPath.of(path)
        resolve(state.schema, self.path)
        self.record_schema = record_schema
        self.requirements = tuple(requirements)
        self.draft: dict[str, Any] | None = None
        self.editing: dict[str, Any] | None = None
        self.pending_delete: dict[str, Any] | None = None

    @property
    def records(self) -> list[dict[str, Any]]:
        return self.state.get(self.path) or []

    @property
    def is_open(self) -> bool:
        return self.draft is not None

    def _record_at(self, index: int) -> dict[str, Any]:
        records = self.records
        if not 0 <= index < len(records):
            raise IndexError(f"{self.path} has no record at index {index}")
        return records[index]

    def _locate(self, records: list[dict[str, Any]], target: dict[str, Any]) -> int | None:
        record_id = target.get("id")
        for index, record in enumerate(records):
            if record_id and record.get("id") == record_id:
                return index
            if not record_id and record == target:
                return index
        return None

    def open_for_create(self, initial: dict[str, Any] | None = None) -> dict[str, Any]:
        self.draft = blank_values(self.record_schema)
        for key, value in (initial or {}).items():
            self.update(key, value)
        self.draft["id"] = None
        self.editing = None
        return deepcopy(self.draft)

    def open_for_edit(self, index: int) -> dict[str, Any]:
        record = self._record_at(index)
        self.draft = {**blank_values(self.record_schema), **record}
        self.editing = deepcopy(record)
        return deepcopy(self.draft)

    def update(self, field: FieldRef, value: Any) -> None:
        if self.draft is None:
            raise EditorClosedError("No record is open for editing")
        field_path = FieldPath.of(field)
        resolve(self.record_schema, field_path)
        set_in(self.draft, field_path, to_wire(value))

    def cancel(self) -> None:
        self.draft = None
        self.editing = None

    def save(self) -> dict[str, Any] | None:
        """Validate the draft and write it into the array.

        Returns the stored record, or None when the record being edited no
        longer exists; the editor is closed either way.
        """

        if self.draft is None:
            raise EditorClosedError("No record is open for editing")
        for requirement in self.requirements:
            if not requirement.satisfied_by(self.draft):
                raise SubRecordValidationError(requirement.field, requirement.message)
        try:
            record = self.record_schema.model_validate(self.draft).model_dump(mode="json", by_alias=True)
        except ValidationError as exc:
            error = exc.errors()[0]
            field = ".".join(str(part) for part in error["loc"])
            raise SubRecordValidationError(field, error["msg"]) from exc

        records = self.records
        if self.editing is None:
            record["id"] = new_temporary_id()
            records.append(record)
        else:
            index = self._locate(records, self.editing)
            if index is None:
                logger.info("%s record %s is gone; edit discarded", self.path, self.editing.get("id"))
                self.cancel()
                return None
            record["id"] = records[index].get("id") or new_temporary_id()
            records[index] = record
        self.state.set(self.path, records)
        logger.debug("saved %s record %s", self.path, record["id"])
        self.cancel()
        return record

    def request_delete(self, index: int) -> dict[str, Any]:
        record = self._record_at(index)
        self.pending_delete = deepcopy(record)
        return record

    def confirm_delete(self) -> dict[str, Any] | None:
        """Remove the record chosen by ``request_delete``; None if nothing is left to remove."""

        target, self.pending_delete = self.pending_delete, None
        if target is None:
            return None
        records = self.records
        index = self._locate(records, target)
        if index is None:
            return None
        removed = records.pop(index)
        self.state.set(self.path, records)
        return removed

    def cancel_delete(self) -> None:
        self.pending_delete = None


def cell_line_editor(state: FormState) -> SubRecordEditor:
    return SubRecordEditor(state, "cellLines", CellLine, CELL_LINE_REQUIREMENTS)


def hazardous_procedure_editor(state: FormState) -> SubRecordEditor:
    return SubRecordEditor(state, "hazardousProcedures", HazardousProcedure, HAZARDOUS_PROCEDURE_REQUIREMENTS)


def synthetic_experiment_editor(state: FormState) -> SubRecordEditor:
    return SubRecordEditor(state, "syntheticExperiments", SyntheticExperiment, SYNTHETIC_EXPERIMENT_REQUIREMENTS)


def team_member_editor(state: FormState) -> SubRecordEditor:
    return SubRecordEditor(state, "teamMembers", TeamMember, TEAM_MEMBER_REQUIREMENTS)


def collaborator_editor(state: FormState) -> SubRecordEditor:
    return SubRecordEditor(state, "collaborators", Collaborator, COLLABORATOR_REQUIREMENTS)
