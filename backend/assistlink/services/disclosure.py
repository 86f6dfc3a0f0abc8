"""Contact disclosure rules applied to every outbound request record."""

from __future__ import annotations

from typing import Iterable, List, TypeVar

from assistlink.core.security import AuthContext
from assistlink.models.requests import ApplicationStatus
from assistlink.schemas.requests import (
    HIDDEN_CONTACT,
    BloodRequestRecord,
    ComplaintRecord,
    Contact,
    ElderSupportRecord,
)

RecordT = TypeVar("RecordT", BloodRequestRecord, ElderSupportRecord, ComplaintRecord)


def may_see_contact(record: RecordT, viewer: AuthContext) -> bool:
    """Requester, admin, committed volunteer or accepted complaint applicant."""
    if viewer.is_admin or record.requester_id == viewer.user_id:
        return True
    if isinstance(record, ComplaintRecord):
        return any(
            application.volunteer_id == viewer.user_id
            and application.status == ApplicationStatus.ACCEPTED
            for application in record.applications
        )
    if isinstance(record, (BloodRequestRecord, ElderSupportRecord)):
        return record.commitment is not None and record.commitment.volunteer_id == viewer.user_id
    raise TypeError(f"Unknown request record {type(record).__name__}")


def reveal(record: RecordT, viewer: AuthContext) -> RecordT:
    """Project ``record`` for ``viewer``, masking contact fields they may not see."""
    if may_see_contact(record, viewer):
        return record.model_copy(update={"contact_visible": True})

    masked = Contact(
        phone=HIDDEN_CONTACT if record.contact.phone else None,
        email=HIDDEN_CONTACT if record.contact.email else None,
    )
    update = {"contact": masked, "contact_visible": False}
    if not isinstance(record, ComplaintRecord):
        update["requester_name"] = HIDDEN_CONTACT
    return record.model_copy(update=update)


def reveal_all(records: Iterable[RecordT], viewer: AuthContext) -> List[RecordT]:
    return [reveal(record, viewer) for record in records]
