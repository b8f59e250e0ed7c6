import pytest

from compliance_portal.forms import (
    IBC_SECTIONS,
    DestructiveChangeGuard,
    FormState,
    IbcField,
    SubRecordValidationError,
    resolve_cell_line,
)
from compliance_portal.forms.editors import (
    EditorClosedError,
    cell_line_editor,
    collaborator_editor,
    hazardous_procedure_editor,
    synthetic_experiment_editor,
    team_member_editor,
)
from compliance_portal.schemas import IbcApplicationForm, PmoApplicationForm


def _fill_cell_line(editor, name="HEK293"):
    editor.open_for_create()
    editor.update("name", name)
    editor.update("biosafetyLevel", "BSL-2")
    editor.update("acquisitionSources", ["atcc"])
    editor.update("passage", "12")
    editor.update("exposureTypes", ["cell_culture"])
    return editor.save()


@pytest.mark.parametrize(
    "missing, message",
    [
        ("name", "Cell line name is required"),
        ("biosafetyLevel", "Biosafety level is required"),
        ("acquisitionSources", "Select at least one acquisition source"),
        ("passage", "Passage is required"),
        ("exposureTypes", "Select at least one exposure type"),
    ],
)
def test_cell_line_requires_each_field(missing, message):
    state = FormState(IbcApplicationForm)
    editor = cell_line_editor(state)
    values = {
        "name": "HEK293",
        "biosafetyLevel": "BSL-2",
        "acquisitionSources": ["atcc"],
        "passage": "12",
        "exposureTypes": ["cell_culture"],
    }
    values.pop(missing)
    editor.open_for_create(values)
    with pytest.raises(SubRecordValidationError) as excinfo:
        editor.save()
    assert excinfo.value.field == missing
    assert excinfo.value.message == message
    assert state.get("cellLines") == []
    assert editor.is_open


def test_first_failing_requirement_wins():
    editor = cell_line_editor(FormState(IbcApplicationForm))
    editor.open_for_create()
    with pytest.raises(SubRecordValidationError) as excinfo:
        editor.save()
    assert excinfo.value.field == "name"


def test_create_appends_with_temporary_id():
    state = FormState(IbcApplicationForm)
    editor = cell_line_editor(state)
    first = _fill_cell_line(editor)
    second = _fill_cell_line(editor, "HeLa")
    records = state.get("cellLines")
    assert [r["name"] for r in records] == ["HEK293", "HeLa"]
    assert first["id"].startswith("tmp-")
    assert first["id"] != second["id"]
    assert not editor.is_open


def test_edit_preserves_id_and_length():
    state = FormState(IbcApplicationForm)
    editor = cell_line_editor(state)
    _fill_cell_line(editor, "A")
    original = _fill_cell_line(editor, "B")
    _fill_cell_line(editor, "C")

    draft = editor.open_for_edit(1)
    assert draft["name"] == "B"
    editor.update("passage", "40")
    saved = editor.save()

    records = state.get("cellLines")
    assert len(records) == 3
    assert saved["id"] == original["id"]
    assert records[1]["passage"] == "40"
    assert [r["name"] for r in records] == ["A", "B", "C"]


def test_failed_edit_leaves_array_unchanged():
    state = FormState(IbcApplicationForm)
    editor = cell_line_editor(state)
    _fill_cell_line(editor)
    before = state.get("cellLines")
    editor.open_for_edit(0)
    editor.update("exposureTypes", [])
    with pytest.raises(SubRecordValidationError):
        editor.save()
    assert state.get("cellLines") == before


def test_delete_removes_exactly_one_and_shifts():
    state = FormState(IbcApplicationForm)
    editor = cell_line_editor(state)
    a = _fill_cell_line(editor, "A")
    _fill_cell_line(editor, "B")
    c = _fill_cell_line(editor, "C")

    assert editor.request_delete(1)["name"] == "B"
    editor.cancel_delete()
    assert len(state.get("cellLines")) == 3

    editor.request_delete(1)
    removed = editor.confirm_delete()
    assert removed["name"] == "B"
    assert [r["id"] for r in state.get("cellLines")] == [a["id"], c["id"]]
    assert editor.confirm_delete() is None

    with pytest.raises(IndexError):
        editor.request_delete(5)


def test_hazardous_procedure_references_cell_line_by_id():
    state = FormState(IbcApplicationForm)
    lines = cell_line_editor(state)
    hek = _fill_cell_line(lines, "HEK293")
    hela = _fill_cell_line(lines, "HeLa")

    procedures = hazardous_procedure_editor(state)
    procedures.open_for_create({"procedure": "Transduction", "cellLineId": hela["id"]})
    with pytest.raises(SubRecordValidationError) as excinfo:
        procedures.save()
    assert excinfo.value.field == "engineeringControls"
    procedures.update("engineeringControls.classIIBiosafetyCabinet", True)
    with pytest.raises(SubRecordValidationError) as excinfo:
        procedures.save()
    assert excinfo.value.field == "ppe"
    procedures.update("ppe.gloves", True)
    procedure = procedures.save()

    # deleting an earlier cell line does not disturb the reference
    lines.request_delete(0)
    lines.confirm_delete()
    records = state.get("cellLines")
    assert resolve_cell_line(records, procedure["cellLineId"])["name"] == "HeLa"

    lines.request_delete(0)
    lines.confirm_delete()
    assert resolve_cell_line(state.get("cellLines"), procedure["cellLineId"]) is None
    assert state.get("hazardousProcedures")[0]["cellLineId"] == hela["id"]
    assert hek["id"] != hela["id"]


def test_synthetic_experiment_and_team_member_checklists():
    state = FormState(IbcApplicationForm)
    experiments = synthetic_experiment_editor(state)
    experiments.open_for_create({"backboneSource": "Addgene", "vectorInsertName": "pLKO.1"})
    with pytest.raises(SubRecordValidationError) as excinfo:
        experiments.save()
    assert excinfo.value.field == "exposedTo"
    experiments.update("exposedTo.cellCulture", True)
    assert experiments.save()["exposedTo"]["cellCulture"] is True

    team = team_member_editor(state)
    team.open_for_create({"scientistId": "7d1e4c1e-1111-4a5b-9c3d-1234567890ab"})
    with pytest.raises(SubRecordValidationError) as excinfo:
        team.save()
    assert excinfo.value.message == "Please select a role"
    team.update("role", "team_leader")
    assert team.save()["role"] == "team_leader"


def test_schema_types_are_enforced_on_save():
    state = FormState(IbcApplicationForm)
    team = team_member_editor(state)
    team.open_for_create({"scientistId": "not-a-uuid", "role": "team_member"})
    with pytest.raises(SubRecordValidationError) as excinfo:
        team.save()
    assert excinfo.value.field == "scientistId"
    assert state.get("teamMembers") == []


def test_collaborators_on_pmo_form():
    state = FormState(PmoApplicationForm)
    editor = collaborator_editor(state)
    editor.open_for_create({"name": "R. Osei"})
    with pytest.raises(SubRecordValidationError) as excinfo:
        editor.save()
    assert excinfo.value.field == "institution"
    editor.update("institution", "Karolinska")
    editor.save()
    assert state.get("collaborators")[0]["institution"] == "Karolinska"


def test_operations_need_an_open_draft():
    editor = cell_line_editor(FormState(IbcApplicationForm))
    with pytest.raises(EditorClosedError):
        editor.update("name", "x")
    with pytest.raises(EditorClosedError):
        editor.save()


def test_delete_after_guard_cleared_section_is_a_no_op():
    state = FormState(IbcApplicationForm, {"humanNonHumanPrimateMaterial": True})
    guard = DestructiveChangeGuard(state, IBC_SECTIONS)
    editor = cell_line_editor(state)
    _fill_cell_line(editor, "HEK293")

    editor.request_delete(0)
    state.set(IbcField.HUMAN_NON_HUMAN_PRIMATE_MATERIAL, False)
    guard.confirm()
    assert state.get("cellLines") == []

    assert editor.confirm_delete() is None
    assert editor.pending_delete is None
    assert state.get("cellLines") == []


def test_edit_of_cleared_record_closes_without_writing():
    state = FormState(IbcApplicationForm, {"humanNonHumanPrimateMaterial": True})
    guard = DestructiveChangeGuard(state, IBC_SECTIONS)
    editor = cell_line_editor(state)
    _fill_cell_line(editor, "HEK293")

    editor.open_for_edit(0)
    editor.update("passage", "30")
    state.set(IbcField.HUMAN_NON_HUMAN_PRIMATE_MATERIAL, False)
    guard.confirm()

    assert editor.save() is None
    assert not editor.is_open
    assert state.get("cellLines") == []


def test_pending_delete_follows_the_record_not_the_index():
    state = FormState(IbcApplicationForm)
    editor = cell_line_editor(state)
    a = _fill_cell_line(editor, "A")
    b = _fill_cell_line(editor, "B")

    editor.request_delete(1)
    state.set("cellLines", [b])
    c = _fill_cell_line(editor, "C")
    assert [r["name"] for r in state.get("cellLines")] == ["B", "C"]

    removed = editor.confirm_delete()
    assert removed["id"] == b["id"]
    assert [r["id"] for r in state.get("cellLines")] == [c["id"]]
    assert a["id"] not in {r["id"] for r in state.get("cellLines")}


def test_edit_follows_the_record_after_reorder():
    state = FormState(IbcApplicationForm)
    editor = cell_line_editor(state)
    a = _fill_cell_line(editor, "A")
    b = _fill_cell_line(editor, "B")

    editor.open_for_edit(0)
    editor.update("passage", "99")
    state.set("cellLines", [b, a])
    saved = editor.save()

    records = state.get("cellLines")
    assert saved["id"] == a["id"]
    assert [r["name"] for r in records] == ["B", "A"]
    assert records[1]["passage"] == "99"
    assert records[0]["passage"] == "12"


def test_whitespace_only_required_field_is_rejected():
    state = FormState(IbcApplicationForm)
    editor = cell_line_editor(state)
    editor.open_for_create({"name": "   ", "biosafetyLevel": "BSL-2"})
    with pytest.raises(SubRecordValidationError) as excinfo:
        editor.save()
    assert excinfo.value.field == "name"
