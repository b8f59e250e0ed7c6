"""Pydantic schemas for Institutional Biosafety Committee applications.

The section models mirror the IBC registration form question by question.
``IbcApplicationSections`` carries every answer with an empty default so a
blank form can be built from it; the payload, create/update and output
models layer transport concerns on top, and the two ``*Form`` models add
the fields that only exist while a user is editing.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field, ValidationInfo, field_validator, model_validator

from .common import (
    ApplicationWorkflowFields,
    CamelModel,
    ResearchActivitySummary,
    ScientistSummary,
    TeamMember,
    decode_team_members,
)

BIOSAFETY_LEVELS = ("BSL-1", "BSL-2", "BSL-3", "BSL-4")

RISK_LEVEL_BY_BIOSAFETY_LEVEL = {
    "BSL-1": "low",
    "BSL-2": "moderate",
    "BSL-3": "high",
    "BSL-4": "high",
}

ANIMAL_MATERIAL_OPTIONS = (
    "live_animals",
    "animal_tissues",
    "animal_cell_lines",
    "animal_blood_serum",
    "animal_derived_products",
    "transgenic_animals",
    "animal_waste",
    "other_animal_materials",
)

CELL_LINE_ACQUISITION_SOURCES = (
    "atcc",
    "research_collaborator",
    "commercial_vendor",
    "institution_lab",
    "other",
)

CELL_LINE_EXPOSURE_TYPES = (
    "cell_culture",
    "vertebrate_animals",
    "humans",
    "none",
)


class CellLine(CamelModel):
    id: str | None = None
    name: str = ""
    biosafety_level: str = ""
    species_of_origin: str = ""
    tissue_type: str = ""
    acquisition_sources: list[str] = Field(default_factory=list)
    passage: str = ""
    exposure_types: list[str] = Field(default_factory=list)
    genetically_modified: bool = False
    description: str = ""


class EngineeringControls(CamelModel):
    centrifuge_cone: bool = False
    class_ii_biosafety_cabinet: bool = Field(False, alias="classIIBiosafetyCabinet")
    engineered_sharps: bool = False
    fume_hood: bool = False
    hepa_filtered_cage: bool = False
    local_exhaust_snorkel: bool = False
    na: bool = False
    sealed_rotor: bool = False
    sealed_vials_tubes: bool = False
    sharps_container: bool = False


class PersonalProtectiveEquipment(CamelModel):
    face_shield: bool = False
    gloves: bool = False
    goggles: bool = False
    head_cover_bonnet: bool = False
    lab_coat_disposable: bool = False
    lab_coat_reusable: bool = False
    na: bool = False
    n95: bool = False
    papr: bool = False
    safety_glasses: bool = False
    shoe_covers: bool = False
    surgical_mask: bool = False
    tyvek_suit: bool = False


class HazardousProcedure(CamelModel):
    id: str | None = None
    procedure: str = ""
    # references CellLine.id, never a list index
    cell_line_id: str | None = None
    backbone_vector: str = ""
    engineering_controls: EngineeringControls = Field(default_factory=EngineeringControls)
    ppe: PersonalProtectiveEquipment = Field(default_factory=PersonalProtectiveEquipment)
    hazardous_procedure_description: str = ""


class DnaSequenceNature(CamelModel):
    anonymous_marker: bool = False
    genomic_dna: bool = Field(False, alias="genomicDNA")
    toxin_gene: bool = False
    c_dna: bool = Field(False, alias="cDNA")
    sn_rna_si_rna: bool = Field(False, alias="snRNAsiRNA")
    other: bool = False


class AnticipatedEffect(CamelModel):
    anti_apoptotic: bool = False
    cytokine_inducer: bool = False
    cytokine_inhibitor: bool = False
    growth_factor: bool = False
    oncogene: bool = False
    toxic: bool = False
    tumor_inducer: bool = False
    tumor_inhibitor: bool = False
    other_specify: str = ""


class ExposedTo(CamelModel):
    arthropods: bool = False
    cell_culture: bool = False
    humans: bool = False
    invertebrate_animals: bool = False
    micro_organism: bool = False
    none: bool = False
    plants_transgenic_plants: bool = False
    vertebrate_animals: bool = False


class VectorSource(CamelModel):
    research_collaborator: bool = False
    commercial_vendor: bool = False
    institution_lab: bool = False
    other_source: bool = False


class OrganismSource(CamelModel):
    library: bool = False
    pcr: bool = False
    synthetic_oligo: bool = False
    other: bool = False


class SyntheticExperiment(CamelModel):
    id: str | None = None
    backbone_source: str = ""
    vector_insert_name: str = ""
    vector_insert: str = ""
    inserted_dna_source: str = ""
    dna_sequence_nature: DnaSequenceNature = Field(default_factory=DnaSequenceNature)
    anticipated_effect: AnticipatedEffect = Field(default_factory=AnticipatedEffect)
    viral_genome_fraction: str = ""
    replication_competent: str = ""
    packaging_cell_lines: str = ""
    tropism: str = ""
    exposed_to: ExposedTo = Field(default_factory=ExposedTo)
    vector_source: VectorSource = Field(default_factory=VectorSource)
    organism_name: str = ""
    organism_source: OrganismSource = Field(default_factory=OrganismSource)


class NihSectionABC(CamelModel):
    requires_nih_director_approval: bool = False
    drug_resistance_traits: bool = False
    toxin_molecules: bool = False
    human_gene_transfer: bool = False
    approval_status: str = ""
    approval_documents: list[str] = Field(default_factory=list)


class NihSectionD(CamelModel):
    risk_group2_plus: bool = Field(False, alias="riskGroup2Plus")
    pathogen_dna_rna: bool = False
    infectious_viral: bool = False
    whole_animal_experiments: bool = False
    whole_plants: bool = False
    large_scale_experiments: bool = False
    influenza_viruses: bool = False
    gene_drive_organisms: bool = False
    containment_level: str = ""
    ibc_approval_date: str = ""


class NihSectionE(CamelModel):
    limited_viral_genome: bool = False
    plant_experiments: bool = False
    transgenic_rodents: bool = False
    registration_date: str = ""


class NihSectionF(CamelModel):
    f1_tissue_culture: bool = Field(False, alias="f1TissueCulture")
    f2_ecoli_k12: bool = Field(False, alias="f2EcoliK12")
    f3_saccharomyces: bool = Field(False, alias="f3Saccharomyces")
    f4_kluyveromyces: bool = Field(False, alias="f4Kluyveromyces")
    f5_bacillus: bool = Field(False, alias="f5Bacillus")
    f6_gram_positive: bool = Field(False, alias="f6GramPositive")
    f7_transgenic_rodents: bool = Field(False, alias="f7TransgenicRodents")
    f8_transgenic_breeding: bool = Field(False, alias="f8TransgenicBreeding")
    exemption_justification: str = ""


class NihAppendixC(CamelModel):
    c_i: bool = Field(False, alias="cI")
    c_ii: bool = Field(False, alias="cII")
    c_iii: bool = Field(False, alias="cIII")
    c_iv: bool = Field(False, alias="cIV")
    c_v: bool = Field(False, alias="cV")
    c_vi: bool = Field(False, alias="cVI")
    c_vii: bool = Field(False, alias="cVII")
    c_viii: bool = Field(False, alias="cVIII")
    c_ix: bool = Field(False, alias="cIX")
    additional_considerations: str = ""


class IbcApplicationSections(CamelModel):
    """Every answer on the IBC form, defaulted to its empty value."""

    # basics
    title: str = ""
    short_title: str = ""
    principal_investigator_id: UUID | None = None
    biosafety_level: str = "BSL-2"
    risk_group_classification: str = ""
    cayuse_protocol_number: str = ""
    description: str = ""
    protocol_summary: str = ""
    additional_notification_email: str = ""

    # biosafety options
    recombinant_synthetic_nucleic_acid: bool = False
    whole_animals_animal_material: bool = False
    animal_material_sub_options: list[str] = Field(default_factory=list)
    human_non_human_primate_material: bool = False
    microorganisms_infectious_material: bool = False
    biological_toxins: bool = False
    nanoparticles: bool = False
    arthropods: bool = False
    plants: bool = False

    # recombinant / synthetic nucleic acids
    synthetic_experiments: list[SyntheticExperiment] = Field(default_factory=list)
    nih_section_abc: NihSectionABC = Field(default_factory=NihSectionABC, alias="nihSectionABC")
    nih_section_d: NihSectionD = Field(default_factory=NihSectionD, alias="nihSectionD")
    nih_section_e: NihSectionE = Field(default_factory=NihSectionE, alias="nihSectionE")
    nih_section_f: NihSectionF = Field(default_factory=NihSectionF, alias="nihSectionF")
    nih_appendix_c: NihAppendixC = Field(default_factory=NihAppendixC, alias="nihAppendixC")
    nucleic_acid_extraction_methods: str = ""

    # human and non-human primate material
    cell_lines: list[CellLine] = Field(default_factory=list)
    hazardous_procedures: list[HazardousProcedure] = Field(default_factory=list)
    stem_cells: bool = False
    human_materials: list[str] = Field(default_factory=list)
    human_material_description: str = ""
    introducing_primate_material_into_animals: bool = False
    cell_culture_procedures: str = ""

    # other agents
    infectious_agents: str = ""
    toxin_names: str = ""
    nanoparticle_description: str = ""
    animal_procedures: str = ""

    # methods, safety and containment
    material_and_methods: str = ""
    procedures_involving_infectious_agents: str = ""
    containment_procedures: str = ""
    emergency_procedures: str = ""
    waste_disposal_plan: str = ""

    # transport and dual use
    transports_materials: bool = False
    transport_details: str = ""
    dual_use_research_of_concern: bool = False
    dual_use_description: str = ""


class IbcApplicationPayload(IbcApplicationSections):
    protocol_team_members: list[TeamMember] = Field(default_factory=list)

    @field_validator("protocol_team_members", mode="before")
    @classmethod
    def _decode_legacy_team_members(cls, value):
        return decode_team_members(value)


class IbcApplicationCreate(IbcApplicationPayload):
    research_activity_ids: list[UUID] = Field(default_factory=list)
    is_draft: bool = False

    @model_validator(mode="after")
    def _require_identity(self) -> "IbcApplicationCreate":
        if not self.title.strip():
            raise ValueError("Title is required")
        if self.principal_investigator_id is None:
            raise ValueError("Principal investigator is required")
        return self


class IbcApplicationUpdate(IbcApplicationPayload):
    is_draft: bool | None = None


class IbcApplicationOut(ApplicationWorkflowFields, IbcApplicationPayload):
    ibc_number: str
    risk_level: str
    submission_type: str = "initial"
    version: int = 1
    principal_investigator: ScientistSummary | None = None
    research_activities: list[ResearchActivitySummary] = Field(default_factory=list)


class IbcApplicationListItem(CamelModel):
    id: UUID
    ibc_number: str
    title: str
    status: str
    biosafety_level: str
    principal_investigator: ScientistSummary | None = None
    updated_at: datetime


class IbcApplicationForm(IbcApplicationSections):
    """Values held by the IBC edit form, including fields never persisted as-is."""

    research_activity_ids: list[UUID] = Field(default_factory=list)
    team_members: list[TeamMember] = Field(default_factory=list)
    submission_comment: str = ""
    selected_member: str | None = None
    selected_roles: list[str] = Field(default_factory=list)


class IbcSubmissionForm(IbcApplicationForm):
    """Strict rules applied before an IBC application may be submitted."""

    @field_validator("title")
    @classmethod
    def _title_length(cls, value: str) -> str:
        if len(value.strip()) < 5:
            raise ValueError("Title must be at least 5 characters")
        return value

    @field_validator("principal_investigator_id")
    @classmethod
    def _principal_investigator_selected(cls, value: UUID | None) -> UUID | None:
        if value is None:
            raise ValueError("Please select a principal investigator")
        return value

    @field_validator("biosafety_level")
    @classmethod
    def _known_biosafety_level(cls, value: str) -> str:
        if value not in BIOSAFETY_LEVELS:
            raise ValueError("Please select a biosafety level")
        return value

    @field_validator("animal_material_sub_options")
    @classmethod
    def _animal_material_detail(cls, value: list[str], info: ValidationInfo) -> list[str]:
        if info.data.get("whole_animals_animal_material") and not value:
            raise ValueError("Select at least one type of animal material")
        return value

    @field_validator("research_activity_ids")
    @classmethod
    def _at_least_one_activity(cls, value: list[UUID]) -> list[UUID]:
        if not value:
            raise ValueError("Please select at least one research activity")
        return value
