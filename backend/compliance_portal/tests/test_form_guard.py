"""
purpose: cover the destructive-change guard and the tab visibility engine together
status: active
"""

from compliance_portal.forms import (
    CHANGE_REQUEST_SECTIONS,
    IBC_SECTIONS,
    PMO_SECTIONS,
    ChangeRequestField,
    DestructiveChangeGuard,
    FormState,
    IbcField,
    PmoField,
    VisibilityEngine,
    is_populated,
)
from compliance_portal.schemas import ChangeRequestForm, IbcApplicationForm, PmoApplicationForm

HEK293 = {
    "id": "tmp-hek293",
    "name": "HEK293",
    "biosafetyLevel": "BSL-2",
    "acquisitionSources": ["atcc"],
    "passage": "12",
    "exposureTypes": ["cell_culture"],
}


def _ibc_form(values=None):
    state = FormState(IbcApplicationForm, values)
    prompts = []
    guard = DestructiveChangeGuard(state, IBC_SECTIONS, on_prompt=prompts.append)
    visibility = VisibilityEngine(state, IBC_SECTIONS)
    return state, guard, visibility, prompts


def test_is_populated_rules():
    assert not is_populated("")
    assert is_populated("   ")
    assert not is_populated(False)
    assert not is_populated([])
    assert not is_populated({"a": False, "b": "", "c": {"d": []}})
    assert is_populated("x")
    assert is_populated(True)
    assert is_populated(["a"])
    assert is_populated({"a": {"b": True}})


def test_empty_section_toggles_off_immediately():
    state, guard, visibility, prompts = _ibc_form({"humanNonHumanPrimateMaterial": True})
    state.set(IbcField.HUMAN_NON_HUMAN_PRIMATE_MATERIAL, False)
    assert state.get(IbcField.HUMAN_NON_HUMAN_PRIMATE_MATERIAL) is False
    assert guard.pending is None
    assert prompts == []
    assert not visibility.is_visible("human-nhp")


def test_hek293_cancel_keeps_everything():
    state, guard, visibility, prompts = _ibc_form(
        {
            "humanNonHumanPrimateMaterial": True,
            "cellLines": [HEK293],
            "stemCells": True,
            "humanMaterials": ["blood"],
        }
    )
    state.set(IbcField.HUMAN_NON_HUMAN_PRIMATE_MATERIAL, False)

    assert state.get(IbcField.HUMAN_NON_HUMAN_PRIMATE_MATERIAL) is True
    assert guard.pending is not None
    assert prompts == [guard.pending]
    assert guard.pending.section.key == "human-nhp"
    assert "Human & Non-Human Primate Material" in guard.pending.message
    assert visibility.is_visible("human-nhp")
    assert visibility.is_visible("cell-lines")

    guard.cancel()
    assert guard.pending is None
    assert state.get(IbcField.HUMAN_NON_HUMAN_PRIMATE_MATERIAL) is True
    assert state.get(IbcField.CELL_LINES)[0]["name"] == "HEK293"
    assert state.get(IbcField.STEM_CELLS) is True


def test_hek293_confirm_clears_section_atomically():
    state, guard, visibility, prompts = _ibc_form(
        {
            "humanNonHumanPrimateMaterial": True,
            "cellLines": [HEK293],
            "hazardousProcedures": [{"id": "tmp-p", "procedure": "Transduction", "cellLineId": "tmp-hek293"}],
            "stemCells": True,
            "humanMaterials": ["blood"],
            "humanMaterialDescription": "Donor blood",
            "cellCultureProcedures": "Passaged twice weekly",
            "title": "Keep me",
        }
    )
    changes = []
    state.watch(changes.append)
    visible_sets = []
    visibility.subscribe(visible_sets.append)

    state.set(IbcField.HUMAN_NON_HUMAN_PRIMATE_MATERIAL, False)
    changes.clear()
    guard.confirm()

    assert state.get(IbcField.HUMAN_NON_HUMAN_PRIMATE_MATERIAL) is False
    assert state.get(IbcField.CELL_LINES) == []
    assert state.get(IbcField.HAZARDOUS_PROCEDURES) == []
    assert state.get(IbcField.STEM_CELLS) is False
    assert state.get(IbcField.HUMAN_MATERIALS) == []
    assert state.get(IbcField.HUMAN_MATERIAL_DESCRIPTION) == ""
    assert state.get(IbcField.CELL_CULTURE_PROCEDURES) == ""
    assert state.get(IbcField.TITLE) == "Keep me"
    assert guard.pending is None
    # one batch: the first notification already sees every dependent cleared
    assert changes[0].path.dotted == "humanNonHumanPrimateMaterial"
    assert not visibility.is_visible("human-nhp")
    assert not visibility.is_visible("hazardous-procedures")
    assert "human-nhp" not in visible_sets[-1]


def test_nested_dependent_data_is_protected():
    state, guard, _, _ = _ibc_form(
        {"recombinantSyntheticNucleicAcid": True, "nihSectionD": {"riskGroup2Plus": True}}
    )
    state.set(IbcField.RECOMBINANT_SYNTHETIC_NUCLEIC_ACID, False)
    assert guard.pending is not None
    assert [path.dotted for path in guard.pending.populated] == ["nihSectionD"]
    guard.confirm()
    assert state.get("nihSectionD.riskGroup2Plus") is False
    assert state.get(IbcField.RECOMBINANT_SYNTHETIC_NUCLEIC_ACID) is False


def test_visibility_only_gates_do_not_prompt():
    state, guard, visibility, _ = _ibc_form({"transportsMaterials": True, "transportDetails": "Dry ice courier"})
    assert visibility.is_visible("transport")
    state.set(IbcField.TRANSPORTS_MATERIALS, False)
    assert guard.pending is None
    assert not visibility.is_visible("transport")
    assert state.get(IbcField.TRANSPORT_DETAILS) == "Dry ice courier"


def test_visibility_notifies_only_on_change():
    state, _, visibility, _ = _ibc_form()
    assert "nucleic-acids" not in visibility.visible_sections()
    assert "synthetic-experiments" not in visibility.visible_sections()
    updates = []
    visibility.subscribe(updates.append)

    state.set(IbcField.TITLE, "Not a gate")
    assert updates == []

    state.set(IbcField.RECOMBINANT_SYNTHETIC_NUCLEIC_ACID, True)
    assert len(updates) == 1
    assert "nucleic-acids" in updates[0]
    assert "synthetic-experiments" in updates[0]


def test_read_only_form_still_computes_visibility():
    state = FormState(IbcApplicationForm, {"humanNonHumanPrimateMaterial": True}, read_only=True)
    visibility = VisibilityEngine(state, IBC_SECTIONS)
    assert visibility.read_only
    assert visibility.is_visible("cell-lines")
    assert not visibility.is_visible("nucleic-acids")


def test_pmo_nested_gate_is_guarded():
    state = FormState(
        PmoApplicationForm,
        {
            "sampleDataProcessing": {"coreFacilities": True},
            "coreLabs": ["Genomics Core"],
            "coreLabJustification": "Sequencing",
        },
    )
    guard = DestructiveChangeGuard(state, PMO_SECTIONS)
    visibility = VisibilityEngine(state, PMO_SECTIONS)

    state.set(PmoField.CORE_FACILITIES, False)
    assert state.get(PmoField.CORE_FACILITIES) is True
    assert guard.pending.section.key == "core-labs"

    # replacing the whole group is caught as well
    guard.cancel()
    state.set("sampleDataProcessing", {"coreFacilities": False, "collaborationWithPI": True})
    assert state.get(PmoField.CORE_FACILITIES) is True
    assert guard.pending is not None

    guard.confirm()
    assert state.get(PmoField.CORE_LABS) == []
    assert state.get(PmoField.CORE_LAB_JUSTIFICATION) == ""
    assert not visibility.is_visible("core-labs")


def test_whitespace_description_still_prompts():
    state, guard, visibility, prompts = _ibc_form(
        {"humanNonHumanPrimateMaterial": True, "humanMaterialDescription": "  "}
    )
    state.set(IbcField.HUMAN_NON_HUMAN_PRIMATE_MATERIAL, False)
    assert state.get(IbcField.HUMAN_NON_HUMAN_PRIMATE_MATERIAL) is True
    assert prompts == [guard.pending]


def test_change_request_pi_transfer_guard_clears_pi_and_signature():
    state = FormState(ChangeRequestForm)
    prompts = []
    guard = DestructiveChangeGuard(state, CHANGE_REQUEST_SECTIONS, on_prompt=prompts.append)
    visibility = VisibilityEngine(state, CHANGE_REQUEST_SECTIONS)
    assert not visibility.is_visible("pi-transfer")

    state.set(ChangeRequestField.LPI_CHANGE, True)
    assert visibility.is_visible("pi-transfer")
    state.set_many(
        {
            ChangeRequestField.NEW_PI_ID: "7d1e4c1e-1111-4a5b-9c3d-1234567890ab",
            "approvals.newPi.name": "Dr. Ines Duarte",
        }
    )

    state.set(ChangeRequestField.LPI_CHANGE, False)
    assert state.get(ChangeRequestField.LPI_CHANGE) is True
    assert prompts == [guard.pending]
    assert guard.pending.section.key == "pi-transfer"

    guard.confirm()
    assert state.get(ChangeRequestField.LPI_CHANGE) is False
    assert state.get(ChangeRequestField.NEW_PI_ID) is None
    assert state.get(ChangeRequestField.NEW_PI_APPROVAL) == {"name": "", "date": "", "signature": ""}
    assert not visibility.is_visible("pi-transfer")


def test_change_request_empty_title_change_toggles_off():
    state = FormState(ChangeRequestForm)
    guard = DestructiveChangeGuard(state, CHANGE_REQUEST_SECTIONS)
    visibility = VisibilityEngine(state, CHANGE_REQUEST_SECTIONS)

    state.set(ChangeRequestField.TITLE_CHANGE, True)
    assert visibility.is_visible("new-title")
    state.set(ChangeRequestField.TITLE_CHANGE, False)
    assert guard.pending is None
    assert not visibility.is_visible("new-title")

    state.set(ChangeRequestField.OTHER, True)
    state.set(ChangeRequestField.OTHER_DESCRIPTION, "Move to a new core facility")
    state.set(ChangeRequestField.OTHER, False)
    assert guard.pending.section.key == "other-change"
    guard.cancel()
    assert state.get(ChangeRequestField.OTHER_DESCRIPTION) == "Move to a new core facility"
