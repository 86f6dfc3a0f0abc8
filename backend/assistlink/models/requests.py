"""
Service request models: the request aggregate, volunteer applications and the update log.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from assistlink.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RequestKind(str, enum.Enum):
    """Request variants."""
    BLOOD = "blood"
    ELDER_SUPPORT = "elder_support"
    COMPLAINT = "complaint"


class RequestStatus(str, enum.Enum):
    """Union of the complaint and blood/elder status vocabularies."""
    OPEN = "open"
    PENDING = "pending"
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    COMPLETED = "completed"
    CLOSED = "closed"
    CANCELLED = "cancelled"


_PRIORITY_RANK = {"low": 0, "medium": 1, "high": 2, "urgent": 3}


class Priority(str, enum.Enum):
    """Urgency shared by all kinds, ordered low < medium < high < urgent."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self.value]

    def __lt__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank >= other.rank


class BloodType(str, enum.Enum):
    """ABO/Rh combinations."""
    A_POS = "A+"
    A_NEG = "A-"
    B_POS = "B+"
    B_NEG = "B-"
    AB_POS = "AB+"
    AB_NEG = "AB-"
    O_POS = "O+"
    O_NEG = "O-"


class ComplaintCategory(str, enum.Enum):
    """Municipal complaint categories."""
    INFRASTRUCTURE = "infrastructure"
    SANITATION = "sanitation"
    WATER_SUPPLY = "water_supply"
    ELECTRICITY = "electricity"
    ROAD_MAINTENANCE = "road_maintenance"
    WASTE_MANAGEMENT = "waste_management"
    PUBLIC_SAFETY = "public_safety"
    HEALTHCARE = "healthcare"
    EDUCATION = "education"
    TRANSPORTATION = "transportation"
    OTHER = "other"


class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class RequestSource(str, enum.Enum):
    """Surface that created the request."""
    MANUAL = "manual"
    TEXT_CHAT = "text_chat"
    VOICE_CHAT = "voice_chat"


def _enum(enum_cls: type[enum.Enum], name: str) -> SQLEnum:
    """Persist enum values rather than member names."""
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class ServiceRequest(Base):
    """
    A citizen request for help. One table holds all three kinds; kind-specific
    columns are null for the other kinds.
    """
    __tablename__ = "service_requests"
    __table_args__ = (
        CheckConstraint(
            "(latitude IS NULL AND longitude IS NULL) OR "
            "(latitude IS NOT NULL AND longitude IS NOT NULL)",
            name="ck_service_requests_coordinates_pair",
        ),
        CheckConstraint(
            "(committed_volunteer_id IS NULL) = (committed_at IS NULL)",
            name="ck_service_requests_commitment_pair",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    kind = Column(_enum(RequestKind, "request_kind"), nullable=False, index=True)
    requester_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    requester_name = Column(String(255), nullable=False)
    status = Column(_enum(RequestStatus, "request_status"), nullable=False, index=True)
    priority = Column(_enum(Priority, "request_priority"), nullable=False, default=Priority.MEDIUM)

    # Blood
    blood_type = Column(_enum(BloodType, "blood_type"))

    # Elder support
    service_type = Column(String(100))
    due_date = Column(DateTime(timezone=True))

    # Complaint
    title = Column(String(200))
    description = Column(Text)
    category = Column(_enum(ComplaintCategory, "complaint_category"))

    # Location
    street = Column(String(255))
    city = Column(String(100))
    state = Column(String(100))
    postal_code = Column(String(12))
    latitude = Column(Float)
    longitude = Column(Float)

    # Contact (disclosure gated)
    contact_phone = Column(String(20), nullable=False)
    contact_email = Column(String(255))

    # Commitment
    committed_volunteer_id = Column(Uuid, ForeignKey("users.id"), index=True)
    committed_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))

    source = Column(_enum(RequestSource, "request_source"), nullable=False, default=RequestSource.MANUAL)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    applications = relationship(
        "VolunteerApplication",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="VolunteerApplication.id",
        lazy="selectin",
    )
    updates = relationship(
        "RequestUpdate",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="RequestUpdate.id",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<ServiceRequest(id={self.id}, kind={self.kind}, status={self.status})>"


class VolunteerApplication(Base):
    """A volunteer's offer to handle a complaint."""
    __tablename__ = "volunteer_applications"
    __table_args__ = (
        UniqueConstraint("request_id", "volunteer_id", name="uq_volunteer_applications_request_volunteer"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(
        Uuid, ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    volunteer_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    message = Column(Text)
    estimated_time = Column(String(100))
    status = Column(
        _enum(ApplicationStatus, "application_status"),
        nullable=False,
        default=ApplicationStatus.PENDING,
    )
    applied_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    request = relationship("ServiceRequest", back_populates="applications")


class RequestUpdate(Base):
    """Append-only log entry; status changes record their from/to pair."""
    __tablename__ = "request_updates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(
        Uuid, ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    message = Column(Text, nullable=False)
    from_status = Column(String(20))
    to_status = Column(String(20))
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    request = relationship("ServiceRequest", back_populates="updates")
