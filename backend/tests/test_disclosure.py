"""Tests for contact disclosure."""

import uuid
from datetime import datetime, timezone

import pytest

from assistlink.core.security import AuthContext, UserRole
from assistlink.models.requests import (
    ApplicationStatus,
    BloodType,
    ComplaintCategory,
    Priority,
    RequestStatus,
)
from assistlink.schemas.requests import (
    HIDDEN_CONTACT,
    ApplicationEntry,
    BloodRequestRecord,
    Commitment,
    ComplaintRecord,
    Contact,
    Location,
)
from assistlink.services.disclosure import may_see_contact, reveal, reveal_all

NOW = datetime(2025, 10, 1, 12, 0, tzinfo=timezone.utc)

REQUESTER = AuthContext(user_id=uuid.uuid4(), role=UserRole.CITIZEN)
HELPER = AuthContext(user_id=uuid.uuid4(), role=UserRole.VOLUNTEER)
STRANGER = AuthContext(user_id=uuid.uuid4(), role=UserRole.VOLUNTEER)
ADMIN = AuthContext(user_id=uuid.uuid4(), role=UserRole.ADMIN)


def _blood(commitment=None, email="ravi@example.com"):
    return BloodRequestRecord(
        id=uuid.uuid4(),
        requester_id=REQUESTER.user_id,
        requester_name="Ravi Kumar",
        status=RequestStatus.ACCEPTED if commitment else RequestStatus.PENDING,
        location=Location(city="Hyderabad"),
        contact=Contact(phone="+91 98765 43210", email=email),
        commitment=commitment,
        created_at=NOW,
        updated_at=NOW,
        blood_type=BloodType.O_POS,
        urgency_level=Priority.URGENT,
    )


def _complaint(applications=()):
    return ComplaintRecord(
        id=uuid.uuid4(),
        requester_id=REQUESTER.user_id,
        requester_name="Ravi Kumar",
        status=RequestStatus.OPEN,
        location=Location(city="Hyderabad"),
        contact=Contact(phone="+91 98765 43210"),
        created_at=NOW,
        updated_at=NOW,
        title="Street lights not working",
        description="Street light broken near the bus stop",
        category=ComplaintCategory.ROAD_MAINTENANCE,
        priority=Priority.MEDIUM,
        applications=applications,
    )


def _application(volunteer, status):
    return ApplicationEntry(volunteer_id=volunteer.user_id, applied_at=NOW, status=status)


class TestBloodAndElder:
    def test_stranger_sees_masked_contact_and_name(self):
        shown = reveal(_blood(), STRANGER)

        assert shown.contact == Contact(phone=HIDDEN_CONTACT, email=HIDDEN_CONTACT)
        assert shown.requester_name == HIDDEN_CONTACT
        assert shown.contact_visible is False
        assert shown.blood_type == BloodType.O_POS

    @pytest.mark.parametrize("viewer", [REQUESTER, ADMIN])
    def test_owner_and_admin_see_everything(self, viewer):
        shown = reveal(_blood(), viewer)

        assert shown.contact.phone == "+91 98765 43210"
        assert shown.requester_name == "Ravi Kumar"
        assert shown.contact_visible is True

    def test_committed_volunteer_sees_contact(self):
        record = _blood(Commitment(volunteer_id=HELPER.user_id, committed_at=NOW))

        assert may_see_contact(record, HELPER)
        assert not may_see_contact(record, STRANGER)
        assert reveal(record, HELPER).contact.phone == "+91 98765 43210"

    def test_missing_email_stays_missing(self):
        shown = reveal(_blood(email=None), STRANGER)

        assert shown.contact.email is None
        assert shown.contact.phone == HIDDEN_CONTACT

    def test_reveal_does_not_mutate_the_source(self):
        record = _blood()

        reveal(record, STRANGER)

        assert record.contact.phone == "+91 98765 43210"


class TestComplaints:
    def test_requester_name_is_public(self):
        shown = reveal(_complaint(), STRANGER)

        assert shown.requester_name == "Ravi Kumar"
        assert shown.contact.phone == HIDDEN_CONTACT

    def test_only_accepted_applicant_sees_contact(self):
        record = _complaint(
            (
                _application(HELPER, ApplicationStatus.ACCEPTED),
                _application(STRANGER, ApplicationStatus.REJECTED),
            )
        )

        assert may_see_contact(record, HELPER)
        assert not may_see_contact(record, STRANGER)

    def test_pending_applicant_sees_masked_contact(self):
        record = _complaint((_application(HELPER, ApplicationStatus.PENDING),))

        assert reveal(record, HELPER).contact_visible is False


def test_reveal_all_filters_per_record():
    mine = _blood()
    committed = _blood(Commitment(volunteer_id=HELPER.user_id, committed_at=NOW))

    shown = reveal_all([mine, committed, _complaint()], HELPER)

    assert [record.contact_visible for record in shown] == [False, True, False]
