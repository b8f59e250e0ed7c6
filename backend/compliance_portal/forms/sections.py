"""Tab layout and gating table for each application form.

Each ``Section`` is one tab. A section with a ``gate`` is shown only while
that boolean field is true; a ``guarded`` section additionally protects its
``dependents`` from being discarded by switching the gate off. The same
table drives both the visibility engine and the destructive-change guard.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from .paths import ChangeRequestField, FieldPath, FieldRef, IbcField, PmoField


@dataclass(frozen=True)
class Section:
    key: str
    label: str
    gate: FieldPath | None = None
    dependents: tuple[FieldPath, ...] = ()
    guarded: bool = False
    parent: str | None = None

    def __post_init__(self) -> None:
        if self.gate is not None:
            object.__setattr__(self, "gate", FieldPath.of(self.gate))
        object.__setattr__(self, "dependents", tuple(FieldPath.of(dep) for dep in self.dependents))
        if self.guarded and (self.gate is None or not self.dependents):
            raise ValueError(f"guarded section {self.key!r} needs a gate and dependents")


def section(
    key: str,
    label: str,
    gate: FieldRef | None = None,
    dependents: Iterable[FieldRef] = (),
    *,
    guarded: bool = False,
    parent: str | None = None,
) -> Section:
    return Section(key, label, gate, tuple(dependents), guarded, parent)


def is_populated(value: Any) -> bool:
    """Whether a value holds user data worth protecting."""

    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value != ""
    if isinstance(value, dict):
        return any(is_populated(item) for item in value.values())
    if isinstance(value, (list, tuple, set)):
        return len(value) > 0
    return True


def guarded_sections(sections: Iterable[Section]) -> list[Section]:
    return [entry for entry in sections if entry.guarded]


IBC_SECTIONS: tuple[Section, ...] = (
    section("basics", "Basics"),
    section("biosafety-options", "Biosafety Options"),
    section("staff", "Staff"),
    section(
        "nucleic-acids",
        "Recombinant or Synthetic Nucleic Acids",
        IbcField.RECOMBINANT_SYNTHETIC_NUCLEIC_ACID,
        (
            IbcField.SYNTHETIC_EXPERIMENTS,
            IbcField.NIH_SECTION_ABC,
            IbcField.NIH_SECTION_D,
            IbcField.NIH_SECTION_E,
            IbcField.NIH_SECTION_F,
            IbcField.NIH_APPENDIX_C,
            IbcField.NUCLEIC_ACID_EXTRACTION_METHODS,
        ),
        guarded=True,
    ),
    section("synthetic-experiments", "Synthetic Experiments", parent="nucleic-acids"),
    section("nih-guidelines", "NIH Guidelines", parent="nucleic-acids"),
    section(
        "human-nhp",
        "Human & Non-Human Primate Material",
        IbcField.HUMAN_NON_HUMAN_PRIMATE_MATERIAL,
        (
            IbcField.CELL_LINES,
            IbcField.HAZARDOUS_PROCEDURES,
            IbcField.STEM_CELLS,
            IbcField.HUMAN_MATERIALS,
            IbcField.HUMAN_MATERIAL_DESCRIPTION,
            IbcField.INTRODUCING_PRIMATE_MATERIAL_INTO_ANIMALS,
            IbcField.CELL_CULTURE_PROCEDURES,
        ),
        guarded=True,
    ),
    section("cell-lines", "Cell Lines", parent="human-nhp"),
    section("hazardous-procedures", "Hazardous Procedures", parent="human-nhp"),
    section(
        "animals",
        "Whole Animals / Animal Material",
        IbcField.WHOLE_ANIMALS_ANIMAL_MATERIAL,
        (IbcField.ANIMAL_MATERIAL_SUB_OPTIONS, IbcField.ANIMAL_PROCEDURES),
    ),
    section(
        "infectious-agents",
        "Microorganisms & Infectious Material",
        IbcField.MICROORGANISMS_INFECTIOUS_MATERIAL,
        (IbcField.INFECTIOUS_AGENTS,),
    ),
    section("toxins", "Biological Toxins", IbcField.BIOLOGICAL_TOXINS, (IbcField.TOXIN_NAMES,)),
    section(
        "nanoparticles",
        "Nanoparticles",
        IbcField.NANOPARTICLES,
        (IbcField.NANOPARTICLE_DESCRIPTION,),
    ),
    section("methods", "Methods & Procedures"),
    section("safety", "Safety & Containment"),
    section(
        "transport",
        "Transport",
        IbcField.TRANSPORTS_MATERIALS,
        (IbcField.TRANSPORT_DETAILS,),
    ),
    section(
        "dual-use",
        "Dual Use Research of Concern",
        IbcField.DUAL_USE_RESEARCH_OF_CONCERN,
        (IbcField.DUAL_USE_DESCRIPTION,),
    ),
    section("review", "Review & Submit"),
)

PMO_SECTIONS: tuple[Section, ...] = (
    section("basics", "Basics"),
    section("research-details", "Research Activity Details"),
    section("requirements", "Requirements"),
    section(
        "irb",
        "IRB Protocol",
        PmoField.HUMAN_SUBJECTS,
        (PmoField.IRB_PROTOCOL_NUMBER,),
        parent="requirements",
    ),
    section(
        "iacuc",
        "IACUC Protocol",
        PmoField.ANIMAL_SAMPLES,
        (PmoField.IACUC_PROTOCOL_NUMBER,),
        parent="requirements",
    ),
    section(
        "collaborators",
        "Outside Collaborators",
        PmoField.OUTSIDE_COLLABORATORS,
        (PmoField.COLLABORATORS,),
        parent="requirements",
    ),
    section(
        "external-funding",
        "External Funding",
        PmoField.EXTERNAL_FUNDING,
        (PmoField.EXTERNAL_FUNDING_SOURCE,),
        parent="requirements",
    ),
    section(
        "core-labs",
        "Core Labs",
        PmoField.CORE_FACILITIES,
        (PmoField.CORE_LABS, PmoField.CORE_LAB_JUSTIFICATION),
        guarded=True,
        parent="requirements",
    ),
    section("methods", "Detailed Methods"),
    section("staff", "Staff"),
    section("review", "Review & Submit"),
)

CHANGE_REQUEST_SECTIONS: tuple[Section, ...] = (
    section("basics", "Research Activity"),
    section("change-category", "Change Category"),
    section(
        "new-title",
        "New Title",
        ChangeRequestField.TITLE_CHANGE,
        (ChangeRequestField.NEW_TITLE,),
        guarded=True,
        parent="change-category",
    ),
    section(
        "pi-transfer",
        "PI Transfer",
        ChangeRequestField.LPI_CHANGE,
        (ChangeRequestField.NEW_PI_ID, ChangeRequestField.NEW_PI_APPROVAL),
        guarded=True,
        parent="change-category",
    ),
    section(
        "budget",
        "Budget Change",
        ChangeRequestField.BUDGET_CHANGE,
        (ChangeRequestField.BUDGET_SOURCE,),
        guarded=True,
        parent="change-category",
    ),
    section(
        "other-change",
        "Other Change",
        ChangeRequestField.OTHER,
        (ChangeRequestField.OTHER_DESCRIPTION,),
        guarded=True,
        parent="change-category",
    ),
    section("reason", "Change Reason"),
    section("approvals", "Certifications & Signatures"),
    section("review", "Review & Submit"),
)
