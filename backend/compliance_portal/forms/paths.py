"""Typed field paths into a form value tree.

A form's values live in one JSON-shaped tree keyed by wire (camelCase)
names. ``FieldPath`` addresses a node in that tree: string segments name
object keys and integer segments index arrays, so ``cellLines.0.name`` is
the name of the first cell line. Paths are checked against the form's
Pydantic schema so a typo fails loudly instead of creating a stray key.
"""

from __future__ import annotations

import types
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Union, get_args, get_origin

from pydantic import BaseModel
from pydantic.fields import FieldInfo
from pydantic_core import PydanticUndefined, to_jsonable_python


class UnknownFieldError(KeyError):
    """Raised when a path does not name a field of the form schema."""


@dataclass(frozen=True)
class FieldPath:
    segments: tuple[str | int, ...]

    @classmethod
    def parse(cls, dotted: str) -> "FieldPath":
        if not dotted:
            raise UnknownFieldError(dotted)
        return cls(tuple(int(part) if part.isdigit() else part for part in dotted.split(".")))

    @classmethod
    def of(cls, ref: "FieldRef") -> "FieldPath":
        if isinstance(ref, FieldPath):
            return ref
        if isinstance(ref, Enum):
            ref = ref.value
        if isinstance(ref, (tuple, list)):
            return cls(tuple(ref))
        return cls.parse(str(ref))

    @property
    def dotted(self) -> str:
        return ".".join(str(segment) for segment in self.segments)

    @property
    def is_root(self) -> bool:
        return not self.segments

    def child(self, *segments: str | int) -> "FieldPath":
        return FieldPath(self.segments + segments)

    def contains(self, other: "FieldPath") -> bool:
        """True when ``other`` is this path or lies beneath it."""

        return other.segments[: len(self.segments)] == self.segments

    def overlaps(self, other: "FieldPath") -> bool:
        return self.contains(other) or other.contains(self)

    def __str__(self) -> str:
        return self.dotted


ROOT = FieldPath(())

FieldRef = Union[FieldPath, str, Enum, tuple]


class IbcField(str, Enum):
    TITLE = "title"
    PRINCIPAL_INVESTIGATOR_ID = "principalInvestigatorId"
    BIOSAFETY_LEVEL = "biosafetyLevel"
    RECOMBINANT_SYNTHETIC_NUCLEIC_ACID = "recombinantSyntheticNucleicAcid"
    WHOLE_ANIMALS_ANIMAL_MATERIAL = "wholeAnimalsAnimalMaterial"
    ANIMAL_MATERIAL_SUB_OPTIONS = "animalMaterialSubOptions"
    HUMAN_NON_HUMAN_PRIMATE_MATERIAL = "humanNonHumanPrimateMaterial"
    MICROORGANISMS_INFECTIOUS_MATERIAL = "microorganismsInfectiousMaterial"
    BIOLOGICAL_TOXINS = "biologicalToxins"
    NANOPARTICLES = "nanoparticles"
    SYNTHETIC_EXPERIMENTS = "syntheticExperiments"
    NIH_SECTION_ABC = "nihSectionABC"
    NIH_SECTION_D = "nihSectionD"
    NIH_SECTION_E = "nihSectionE"
    NIH_SECTION_F = "nihSectionF"
    NIH_APPENDIX_C = "nihAppendixC"
    NUCLEIC_ACID_EXTRACTION_METHODS = "nucleicAcidExtractionMethods"
    CELL_LINES = "cellLines"
    HAZARDOUS_PROCEDURES = "hazardousProcedures"
    STEM_CELLS = "stemCells"
    HUMAN_MATERIALS = "humanMaterials"
    HUMAN_MATERIAL_DESCRIPTION = "humanMaterialDescription"
    INTRODUCING_PRIMATE_MATERIAL_INTO_ANIMALS = "introducingPrimateMaterialIntoAnimals"
    CELL_CULTURE_PROCEDURES = "cellCultureProcedures"
    INFECTIOUS_AGENTS = "infectiousAgents"
    TOXIN_NAMES = "toxinNames"
    NANOPARTICLE_DESCRIPTION = "nanoparticleDescription"
    ANIMAL_PROCEDURES = "animalProcedures"
    TRANSPORTS_MATERIALS = "transportsMaterials"
    TRANSPORT_DETAILS = "transportDetails"
    DUAL_USE_RESEARCH_OF_CONCERN = "dualUseResearchOfConcern"
    DUAL_USE_DESCRIPTION = "dualUseDescription"
    RESEARCH_ACTIVITY_IDS = "researchActivityIds"
    TEAM_MEMBERS = "teamMembers"
    SUBMISSION_COMMENT = "submissionComment"
    SELECTED_MEMBER = "selectedMember"
    SELECTED_ROLES = "selectedRoles"


class PmoField(str, Enum):
    TITLE = "title"
    LEAD_SCIENTIST_ID = "leadScientistId"
    DURATION_MONTHS = "durationMonths"
    ABSTRACT = "abstract"
    HUMAN_SUBJECTS = "ethicsRequirements.humanSubjects"
    ANIMAL_SAMPLES = "ethicsRequirements.animalSamples"
    IRB_PROTOCOL_NUMBER = "irbProtocolNumber"
    IACUC_PROTOCOL_NUMBER = "iacucProtocolNumber"
    OUTSIDE_COLLABORATORS = "collaborationRequirements.outsideCollaborators"
    COLLABORATORS = "collaborators"
    EXTERNAL_FUNDING = "budgetRequirements.externalFunding"
    EXTERNAL_FUNDING_SOURCE = "externalFundingSource"
    CORE_FACILITIES = "sampleDataProcessing.coreFacilities"
    CORE_LABS = "coreLabs"
    CORE_LAB_JUSTIFICATION = "coreLabJustification"
    RESEARCH_ACTIVITY_ID = "researchActivityId"
    TEAM_MEMBERS = "teamMembers"
    SUBMISSION_COMMENT = "submissionComment"
    SELECTED_MEMBER = "selectedMember"
    SELECTED_ROLES = "selectedRoles"


class ChangeRequestField(str, Enum):
    RESEARCH_ACTIVITY_ID = "researchActivityId"
    ACTIVITY_TYPE = "activityType"
    LPI_CHANGE = "changeCategory.lpiChange"
    BUDGET_CHANGE = "changeCategory.budgetChange"
    TITLE_CHANGE = "changeCategory.titleChange"
    SCOPE_CHANGE = "changeCategory.scopeChange"
    OTHER = "changeCategory.other"
    OTHER_DESCRIPTION = "changeCategory.otherDescription"
    NEW_TITLE = "newTitle"
    CHANGE_REASON = "changeReason"
    NEW_PI_ID = "newPiId"
    NEW_PI_APPROVAL = "approvals.newPi"
    BUDGET_SOURCE = "budgetSource"
    SUBMISSION_COMMENT = "submissionComment"


def get_in(tree: Any, path: FieldPath, default: Any = None) -> Any:
    node = tree
    for segment in path.segments:
        if isinstance(segment, int):
            if not isinstance(node, list) or not -len(node) <= segment < len(node):
                return default
            node = node[segment]
        else:
            if not isinstance(node, dict) or segment not in node:
                return default
            node = node[segment]
    return node


def set_in(tree: dict[str, Any], path: FieldPath, value: Any) -> None:
    if path.is_root:
        raise UnknownFieldError("cannot assign the root of a form")
    node: Any = tree
    for position, segment in enumerate(path.segments[:-1]):
        following = path.segments[position + 1]
        if isinstance(segment, int):
            if not isinstance(node, list) or not -len(node) <= segment < len(node):
                raise UnknownFieldError(path.dotted)
        elif not isinstance(node.get(segment), (dict, list)):
            node[segment] = [] if isinstance(following, int) else {}
        node = node[segment]
    last = path.segments[-1]
    if isinstance(last, int):
        if not isinstance(node, list) or not -len(node) <= last < len(node):
            raise UnknownFieldError(path.dotted)
    node[last] = value


def _unwrap_optional(annotation: Any) -> Any:
    if get_origin(annotation) in (Union, types.UnionType):
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _is_model(annotation: Any) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, BaseModel)


@lru_cache(maxsize=None)
def fields_by_alias(model: type[BaseModel]) -> dict[str, FieldInfo]:
    return {info.alias or name: info for name, info in model.model_fields.items()}


def resolve(schema: type[BaseModel], path: FieldPath) -> tuple[Any, FieldInfo | None]:
    """Return the annotation at ``path`` and its ``FieldInfo`` when it names a field."""

    annotation: Any = schema
    info: FieldInfo | None = None
    for segment in path.segments:
        annotation = _unwrap_optional(annotation)
        if isinstance(segment, int):
            if get_origin(annotation) is not list:
                raise UnknownFieldError(path.dotted)
            annotation = get_args(annotation)[0]
            info = None
            continue
        if not _is_model(annotation):
            raise UnknownFieldError(path.dotted)
        info = fields_by_alias(annotation).get(segment)
        if info is None:
            raise UnknownFieldError(path.dotted)
        annotation = info.annotation
    return annotation, info


def to_wire(value: Any) -> Any:
    """Convert models, UUIDs and dates to the JSON shape held in the value tree."""

    return to_jsonable_python(value, by_alias=True)


def default_value(schema: type[BaseModel], path: FieldPath) -> Any:
    """The empty value a field takes on a blank form."""

    annotation, info = resolve(schema, path)
    if info is not None:
        value = info.get_default(call_default_factory=True)
        return None if value is PydanticUndefined else to_wire(value)
    annotation = _unwrap_optional(annotation)
    if _is_model(annotation):
        return blank_values(annotation)
    return None


def blank_values(schema: type[BaseModel]) -> dict[str, Any]:
    return schema.model_construct().model_dump(mode="json", by_alias=True)
