"""Pydantic schemas consolidating backend API contracts."""

# purpose: aggregate request and response schemas for FastAPI surfaces and the form layer
# status: active

from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr

from .change_request import (
    ChangeApprovals,
    ChangeCategory,
    ChangeRequestCreate,
    ChangeRequestForm,
    ChangeRequestListItem,
    ChangeRequestOut,
    ChangeRequestPayload,
    ChangeRequestSections,
    ChangeRequestSubmissionForm,
    ChangeRequestUpdate,
    Signature,
)
from .common import (
    ApplicationStatus,
    CamelModel,
    CommentCreate,
    CommentOut,
    ResearchActivitySummary,
    ReviewerFeedback,
    ReviewerFeedbackOut,
    ScientistSummary,
    TEAM_ROLES,
    TeamMember,
)
from .ibc import (
    BIOSAFETY_LEVELS,
    CellLine,
    HazardousProcedure,
    IbcApplicationCreate,
    IbcApplicationForm,
    IbcApplicationListItem,
    IbcApplicationOut,
    IbcApplicationPayload,
    IbcApplicationSections,
    IbcApplicationUpdate,
    IbcSubmissionForm,
    RISK_LEVEL_BY_BIOSAFETY_LEVEL,
    SyntheticExperiment,
)
from .pmo import (
    Collaborator,
    PmoApplicationCreate,
    PmoApplicationForm,
    PmoApplicationListItem,
    PmoApplicationOut,
    PmoApplicationPayload,
    PmoApplicationSections,
    PmoApplicationUpdate,
    PmoSubmissionForm,
)


ApplicantRole = Literal["researcher", "principal_investigator"]
PortalRole = Literal["researcher", "principal_investigator", "reviewer", "office"]


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    full_name: Optional[str] = None
    # reviewer and office roles are granted by an admin, never self-assigned
    role: ApplicantRole = "researcher"


class RoleAssignment(BaseModel):
    role: PortalRole


class UserOut(BaseModel):
    id: UUID
    email: EmailStr
    full_name: Optional[str] = None
    role: str = "researcher"
    is_admin: bool = False
    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    otp_code: Optional[str] = None


class TwoFactorEnableOut(BaseModel):
    secret: str
    otpauth_url: str


class TwoFactorVerifyIn(BaseModel):
    code: str


class ScientistCreate(CamelModel):
    name: str
    email: Optional[str] = None
    department: Optional[str] = None
    title: Optional[str] = None
    profile_image_initials: Optional[str] = None
    is_principal_investigator: bool = False


class ScientistOut(ScientistCreate):
    id: UUID
    model_config = ConfigDict(from_attributes=True)


class ResearchActivityCreate(CamelModel):
    sdr_number: str
    title: str
    status: str = "active"
    principal_investigator_id: Optional[UUID] = None


class ResearchActivityOut(ResearchActivityCreate):
    id: UUID
    model_config = ConfigDict(from_attributes=True)


class StaffAssignment(CamelModel):
    scientist_id: UUID
    role: str = "staff"


class ResearchActivityLink(CamelModel):
    research_activity_id: UUID


class PersonnelOut(TeamMember):
    scientist: Optional[ScientistOut] = None
