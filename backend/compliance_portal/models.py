import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


APPLICATION_STATUSES = (
    "draft",
    "submitted",
    "under_review",
    "revision_requested",
    "approved",
    "rejected",
)


class User(Base):
    __tablename__ = "users"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    full_name = Column(String)
    # purpose: gate reviewer tooling; applicants stay "researcher"
    role = Column(String, default="researcher", nullable=False)
    two_factor_secret = Column(String)
    two_factor_enabled = Column(Boolean, default=False)
    is_admin = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=_utcnow)


class Scientist(Base):
    __tablename__ = "scientists"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    email = Column(String)
    department = Column(String)
    title = Column(String)
    profile_image_initials = Column(String)
    is_principal_investigator = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_utcnow)


class ResearchActivity(Base):
    __tablename__ = "research_activities"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sdr_number = Column(String, unique=True, nullable=False)
    title = Column(String, nullable=False)
    status = Column(String, default="active", nullable=False)
    principal_investigator_id = Column(UUID(as_uuid=True), ForeignKey("scientists.id"))
    created_at = Column(DateTime, default=_utcnow)

    principal_investigator = relationship("Scientist")
    staff = relationship(
        "ResearchActivityStaff",
        back_populates="research_activity",
        cascade="all, delete-orphan",
    )


class ResearchActivityStaff(Base):
    __tablename__ = "research_activity_staff"
    research_activity_id = Column(
        UUID(as_uuid=True), ForeignKey("research_activities.id"), primary_key=True
    )
    scientist_id = Column(UUID(as_uuid=True), ForeignKey("scientists.id"), primary_key=True)
    role = Column(String, default="staff")

    research_activity = relationship("ResearchActivity", back_populates="staff")
    scientist = relationship("Scientist")


class IbcApplication(Base):
    __tablename__ = "ibc_applications"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ibc_number = Column(String, unique=True, nullable=False)
    title = Column(String, nullable=False)
    principal_investigator_id = Column(
        UUID(as_uuid=True), ForeignKey("scientists.id"), nullable=False
    )
    biosafety_level = Column(String, nullable=False, default="BSL-2")
    risk_level = Column(String, nullable=False, default="moderate")
    status = Column(String, nullable=False, default="draft")
    submission_type = Column(String, nullable=False, default="initial")
    version = Column(Integer, nullable=False, default=1)
    # purpose: section answers keyed by their wire (camelCase) names
    form_data = Column(JSON, default=dict)
    protocol_team_members = Column(JSON, default=list)
    submission_date = Column(DateTime, nullable=True)
    under_review_date = Column(DateTime, nullable=True)
    approval_date = Column(DateTime, nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    principal_investigator = relationship("Scientist")
    research_activity_links = relationship(
        "IbcApplicationResearchActivity",
        back_populates="application",
        cascade="all, delete-orphan",
    )


class IbcApplicationResearchActivity(Base):
    __tablename__ = "ibc_application_research_activities"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ibc_application_id = Column(
        UUID(as_uuid=True), ForeignKey("ibc_applications.id"), nullable=False
    )
    research_activity_id = Column(
        UUID(as_uuid=True), ForeignKey("research_activities.id"), nullable=False
    )
    created_at = Column(DateTime, default=_utcnow)

    application = relationship("IbcApplication", back_populates="research_activity_links")
    research_activity = relationship("ResearchActivity")

    __table_args__ = (sa.UniqueConstraint("ibc_application_id", "research_activity_id"),)


class PmoApplication(Base):
    __tablename__ = "pmo_applications"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_number = Column(String, unique=True, nullable=False)
    title = Column(String, nullable=False)
    lead_scientist_id = Column(UUID(as_uuid=True), ForeignKey("scientists.id"), nullable=False)
    research_activity_id = Column(
        UUID(as_uuid=True), ForeignKey("research_activities.id"), nullable=True
    )
    status = Column(String, nullable=False, default="draft")
    form_data = Column(JSON, default=dict)
    protocol_team_members = Column(JSON, default=list)
    submission_date = Column(DateTime, nullable=True)
    under_review_date = Column(DateTime, nullable=True)
    approval_date = Column(DateTime, nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    lead_scientist = relationship("Scientist")


class ChangeRequest(Base):
    """RA-205A request to change an existing research activity (title, PI, budget, scope)."""

    __tablename__ = "change_requests"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    change_request_number = Column(String, unique=True, nullable=False)
    research_activity_id = Column(
        UUID(as_uuid=True), ForeignKey("research_activities.id"), nullable=False
    )
    # snapshot of the activity when the request was raised
    sdr_number = Column(String, nullable=False)
    current_title = Column(String, nullable=False)
    current_pi_id = Column(UUID(as_uuid=True), ForeignKey("scientists.id"), nullable=True)
    new_pi_id = Column(UUID(as_uuid=True), ForeignKey("scientists.id"), nullable=True)
    title = Column(String, nullable=False)
    status = Column(String, nullable=False, default="draft")
    form_data = Column(JSON, default=dict)
    submission_date = Column(DateTime, nullable=True)
    under_review_date = Column(DateTime, nullable=True)
    approval_date = Column(DateTime, nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    research_activity = relationship("ResearchActivity")
    current_pi = relationship("Scientist", foreign_keys=[current_pi_id])
    new_pi = relationship("Scientist", foreign_keys=[new_pi_id])


class ApplicationComment(Base):
    """Immutable timeline entry attached to an application or change request."""

    __tablename__ = "application_comments"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_kind = Column(String, nullable=False)
    application_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    comment_type = Column(String, nullable=False)
    author_type = Column(String, nullable=False)
    author_name = Column(String)
    author_id = Column(UUID(as_uuid=True), nullable=True)
    comment = Column(Text, nullable=False)
    recommendation = Column(String, nullable=True)
    status_from = Column(String, nullable=True)
    status_to = Column(String, nullable=True)
    is_internal = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_utcnow)


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    action = Column(String, nullable=False)
    target_type = Column(String)
    target_id = Column(UUID(as_uuid=True))
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=_utcnow)
