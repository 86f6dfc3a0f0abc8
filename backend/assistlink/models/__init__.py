"""
SQLAlchemy database models.
"""

from assistlink.models.auth import User
from assistlink.models.requests import (
    ApplicationStatus,
    BloodType,
    ComplaintCategory,
    Priority,
    RequestKind,
    RequestSource,
    RequestStatus,
    RequestUpdate,
    ServiceRequest,
    VolunteerApplication,
)
from assistlink.models.chat import ChatMessage

__all__ = [
    "User",
    "ServiceRequest",
    "VolunteerApplication",
    "RequestUpdate",
    "ChatMessage",
    "RequestKind",
    "RequestStatus",
    "Priority",
    "BloodType",
    "ComplaintCategory",
    "ApplicationStatus",
    "RequestSource",
]
