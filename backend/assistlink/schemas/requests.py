"""
Pydantic schemas for service requests.

Records are immutable snapshots handed to readers; one variant per request
kind, discriminated on ``kind``. Create payloads mirror the same split so a
blood request without a blood type never validates.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    TypeAdapter,
    ValidationError,
    model_validator,
)

from assistlink.core.errors import RequestValidationFailed
from assistlink.models.requests import (
    ApplicationStatus,
    BloodType,
    ComplaintCategory,
    Priority,
    RequestSource,
    RequestStatus,
)

HIDDEN_CONTACT = "Hidden until you volunteer"

PHONE_PATTERN = r"^\+?[0-9][0-9 \-]{6,18}[0-9]$"


class Coordinates(BaseModel):
    """A complete (lat, lon) pair."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)

    @model_validator(mode="before")
    @classmethod
    def accept_pairs(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            if len(value) != 2:
                raise ValueError("coordinates must be a (lat, lon) pair")
            return {"lat": value[0], "lon": value[1]}
        if isinstance(value, Mapping) and "lng" in value and "lon" not in value:
            return {"lat": value.get("lat"), "lon": value["lng"]}
        return value


class Location(BaseModel):
    """Structured address; geocoding is optional."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    street: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=12)
    coordinates: Optional[Coordinates] = None


class Contact(BaseModel):
    model_config = ConfigDict(frozen=True)

    phone: Optional[str] = None
    email: Optional[str] = None


class Commitment(BaseModel):
    model_config = ConfigDict(frozen=True)

    volunteer_id: UUID
    committed_at: datetime


class ApplicationEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    volunteer_id: UUID
    message: Optional[str] = None
    estimated_time: Optional[str] = None
    applied_at: datetime
    status: ApplicationStatus


class StatusChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_status: RequestStatus
    to_status: RequestStatus


class UpdateEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    author_id: UUID
    message: str
    created_at: datetime
    status_change: Optional[StatusChange] = None


class _RecordBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    requester_id: UUID
    requester_name: str
    status: RequestStatus
    location: Location
    contact: Contact
    contact_visible: bool = True
    commitment: Optional[Commitment] = None
    updates: tuple[UpdateEntry, ...] = ()
    source: RequestSource = RequestSource.MANUAL
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class BloodRequestRecord(_RecordBase):
    kind: Literal["blood"] = "blood"
    blood_type: BloodType
    urgency_level: Priority


class ElderSupportRecord(_RecordBase):
    kind: Literal["elder_support"] = "elder_support"
    service_type: str
    due_date: Optional[datetime] = None
    urgency_level: Priority


class ComplaintRecord(_RecordBase):
    kind: Literal["complaint"] = "complaint"
    title: str
    description: str
    category: ComplaintCategory
    priority: Priority
    applications: tuple[ApplicationEntry, ...] = ()


ServiceRequestRecord = Annotated[
    Union[BloodRequestRecord, ElderSupportRecord, ComplaintRecord],
    Field(discriminator="kind"),
]


def priority_of(record: _RecordBase) -> Priority:
    """The shared ordered priority, whatever the kind calls it."""
    if isinstance(record, ComplaintRecord):
        return record.priority
    if isinstance(record, (BloodRequestRecord, ElderSupportRecord)):
        return record.urgency_level
    raise TypeError(f"Unknown request record {type(record).__name__}")


# Create payloads
class _CreateBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    requester_name: Optional[str] = Field(None, min_length=1, max_length=255)
    location: Optional[Location] = None
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    email: Optional[EmailStr] = None


class BloodRequestCreate(_CreateBase):
    kind: Literal["blood"]
    blood_type: BloodType
    urgency_level: Priority = Priority.MEDIUM


class ElderSupportCreate(_CreateBase):
    kind: Literal["elder_support"]
    service_type: str = Field(..., min_length=2, max_length=100)
    due_date: Optional[datetime] = None
    urgency_level: Priority = Priority.MEDIUM


class ComplaintCreate(_CreateBase):
    kind: Literal["complaint"]
    title: str = Field(..., min_length=5, max_length=200)
    description: str = Field(..., min_length=10, max_length=2000)
    category: ComplaintCategory = ComplaintCategory.OTHER
    priority: Priority = Priority.MEDIUM


RequestCreate = Annotated[
    Union[BloodRequestCreate, ElderSupportCreate, ComplaintCreate],
    Field(discriminator="kind"),
]

_create_adapter: TypeAdapter = TypeAdapter(RequestCreate)


_KIND_TAGS = ("blood", "elder_support", "complaint")


def _field_path(loc: tuple) -> str:
    # Tagged-union errors are prefixed with the kind.
    if len(loc) > 1 and loc[0] in _KIND_TAGS:
        loc = loc[1:]
    return ".".join(str(part) for part in loc)


def parse_create_payload(fields: Union[Mapping[str, Any], BaseModel]) -> Union[
    BloodRequestCreate, ElderSupportCreate, ComplaintCreate
]:
    """Validate kind-specific creation fields, raising RequestValidationFailed."""
    if isinstance(fields, (BloodRequestCreate, ElderSupportCreate, ComplaintCreate)):
        return fields
    if isinstance(fields, BaseModel):
        fields = fields.model_dump(exclude_unset=True)
    try:
        return _create_adapter.validate_python(dict(fields))
    except ValidationError as exc:
        errors = [
            {"field": _field_path(error["loc"]), "message": error["msg"]}
            for error in exc.errors()
        ]
        raise RequestValidationFailed(
            "Request fields are invalid or incomplete", context={"errors": errors}
        ) from exc


class RequestEdit(_CreateBase):
    """
    Fields a requester may change while nobody has taken the request on.

    ``kind`` and ``blood_type`` are absent, so sending either is a
    validation error. Which of the kind-specific fields apply depends on the
    stored request.
    """

    urgency_level: Optional[Priority] = None
    service_type: Optional[str] = Field(None, min_length=2, max_length=100)
    due_date: Optional[datetime] = None
    title: Optional[str] = Field(None, min_length=5, max_length=200)
    description: Optional[str] = Field(None, min_length=10, max_length=2000)
    category: Optional[ComplaintCategory] = None
    priority: Optional[Priority] = None


def parse_edit_payload(fields: Union[Mapping[str, Any], BaseModel]) -> RequestEdit:
    """Validate an edit, raising RequestValidationFailed with per-field errors."""
    if isinstance(fields, RequestEdit):
        return fields
    if isinstance(fields, BaseModel):
        fields = fields.model_dump(exclude_unset=True)
    try:
        return RequestEdit.model_validate(dict(fields))
    except ValidationError as exc:
        errors = [
            {"field": _field_path(error["loc"]), "message": error["msg"]}
            for error in exc.errors()
        ]
        raise RequestValidationFailed(
            "Request edit is invalid", context={"errors": errors}
        ) from exc


# Action payloads
class TransitionRequest(BaseModel):
    target: RequestStatus
    message: Optional[str] = Field(None, max_length=1000)


class UpdateCreate(BaseModel):
    message: str = Field(..., min_length=1, max_length=1000)


class ApplicationCreate(BaseModel):
    message: Optional[str] = Field(None, max_length=1000)
    estimated_time: Optional[str] = Field(None, max_length=100)


class AssignRequest(BaseModel):
    volunteer_id: UUID


class RequestPage(BaseModel):
    items: List[ServiceRequestRecord]
    page: int
    limit: int
    total: int


class RequestSummary(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_kind: Dict[str, int]


class CommitmentSummary(BaseModel):
    """A volunteer's dashboard: what they have taken on and finished."""

    total: int
    active: int
    completed: int
    by_kind: Dict[str, int]
    completed_by_kind: Dict[str, int]
    pending_applications: int
