"""
Matching engine: how volunteers take on requests.

Blood and elder support requests have one fulfilment slot, claimed by the
first volunteer through a conditional update. Complaints collect
applications and the requester (or an admin) assigns one of them.
"""
from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from assistlink.core.errors import (
    ActionForbidden,
    AlreadyCommitted,
    DuplicateApplication,
    InvalidTransition,
    RequestNotFound,
    SelfCommitForbidden,
)
from assistlink.core.metrics import record_commit_attempt, record_status_transition
from assistlink.core.security import AuthContext
from assistlink.models.requests import (
    ApplicationStatus,
    RequestKind,
    RequestStatus,
    ServiceRequest,
    VolunteerApplication,
    utcnow,
)
from assistlink.services.disclosure import reveal
from assistlink.services.lifecycle import COMMITTED_STATUS, INITIAL_STATUS
from assistlink.services.request_store import Record, RequestStore, to_record

logger = logging.getLogger(__name__)


class MatchingEngine:
    """Single-slot commit for blood/elder support, apply-then-assign for complaints."""

    def __init__(self, store: RequestStore) -> None:
        self.store = store
        self.db = store.db

    async def volunteer(self, request_id: UUID, volunteer: AuthContext) -> Record:
        """
        Claim the single fulfilment slot of a blood or elder support request.

        Raises:
            AlreadyCommitted: another volunteer holds the slot
            SelfCommitForbidden: the volunteer owns the request
            InvalidTransition: the request is a complaint or no longer pending
        """
        async with self.store.writing(request_id):
            row = await self.store.load(request_id, for_update=True)
            kind = row.kind
            if kind == RequestKind.COMPLAINT:
                raise InvalidTransition(
                    "Complaints are fulfilled by applying and being assigned"
                )
            if row.requester_id == volunteer.user_id:
                record_commit_attempt(kind.value, "self_commit")
                raise SelfCommitForbidden("Cannot volunteer for your own request")
            if row.committed_volunteer_id is not None:
                record_commit_attempt(kind.value, "already_committed")
                raise AlreadyCommitted("Another volunteer has already committed to this request")

            initial = INITIAL_STATUS[kind]
            target = COMMITTED_STATUS[kind]
            if row.status != initial:
                raise InvalidTransition(
                    f"Request is {row.status.value}; only {initial.value} requests accept volunteers",
                    context={"from": row.status.value, "to": target.value},
                )

            now = utcnow()
            result = await self.db.execute(
                update(ServiceRequest)
                .where(
                    ServiceRequest.id == request_id,
                    ServiceRequest.status == initial,
                    ServiceRequest.committed_volunteer_id.is_(None),
                )
                .values(
                    status=target,
                    committed_volunteer_id=volunteer.user_id,
                    committed_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                record_commit_attempt(kind.value, "already_committed")
                raise AlreadyCommitted("Another volunteer has already committed to this request")

            row = await self.store.load(request_id, for_update=True)
            self.store.append_update(
                row,
                volunteer.user_id,
                "Volunteer committed to help",
                initial,
                target,
                now,
            )

        record_commit_attempt(kind.value, "won")
        record_status_transition(kind.value, initial.value, target.value)
        logger.info("Volunteer %s committed to %s request %s", volunteer.user_id, kind.value, request_id)
        return reveal(to_record(row), volunteer)

    async def apply(
        self,
        request_id: UUID,
        volunteer: AuthContext,
        message: Optional[str] = None,
        estimated_time: Optional[str] = None,
    ) -> Record:
        """Add a pending application to an open complaint; one per volunteer."""
        try:
            async with self.store.writing(request_id):
                row = await self.store.load(request_id, for_update=True)
                if row.kind != RequestKind.COMPLAINT:
                    raise InvalidTransition(
                        "Only complaints take applications; volunteer for blood and elder support requests"
                    )
                if not volunteer.is_volunteer:
                    raise ActionForbidden("Only volunteers can apply to complaints")
                if row.requester_id == volunteer.user_id:
                    raise SelfCommitForbidden("Cannot apply to your own complaint")
                if any(a.volunteer_id == volunteer.user_id for a in row.applications):
                    raise DuplicateApplication("You have already applied to this complaint")
                if row.status != RequestStatus.OPEN:
                    raise InvalidTransition(
                        f"Complaint is {row.status.value}; applications are only accepted while open"
                    )

                now = utcnow()
                row.applications.append(
                    VolunteerApplication(
                        volunteer_id=volunteer.user_id,
                        message=message,
                        estimated_time=estimated_time,
                        status=ApplicationStatus.PENDING,
                        applied_at=now,
                    )
                )
                row.updated_at = now
        except IntegrityError as exc:
            # Lost a cross-process race on the (request, volunteer) unique key.
            raise DuplicateApplication("You have already applied to this complaint") from exc

        logger.info("Volunteer %s applied to complaint %s", volunteer.user_id, request_id)
        return reveal(to_record(row), volunteer)

    async def assign(self, request_id: UUID, volunteer_id: UUID, actor: AuthContext) -> Record:
        """
        Accept one pending application and reject the others, committing that
        volunteer and moving the complaint to assigned in a single transaction.
        """
        async with self.store.writing(request_id):
            row = await self.store.load(request_id, for_update=True)
            if row.kind != RequestKind.COMPLAINT:
                raise InvalidTransition("Only complaints are assigned")
            if not (actor.is_admin or row.requester_id == actor.user_id):
                raise ActionForbidden("Only the requester or an admin may assign a volunteer")
            if row.committed_volunteer_id is not None:
                record_commit_attempt(row.kind.value, "already_committed")
                raise InvalidTransition(
                    "A volunteer is already assigned to this complaint",
                    context={"from": row.status.value, "to": RequestStatus.ASSIGNED.value},
                )
            if row.status != RequestStatus.OPEN:
                raise InvalidTransition(
                    f"Complaint is {row.status.value}; only open complaints can be assigned",
                    context={"from": row.status.value, "to": RequestStatus.ASSIGNED.value},
                )

            chosen = next(
                (
                    application
                    for application in row.applications
                    if application.volunteer_id == volunteer_id
                    and application.status == ApplicationStatus.PENDING
                ),
                None,
            )
            if chosen is None:
                raise RequestNotFound(f"No pending application from volunteer {volunteer_id}")

            now = utcnow()
            rejected = 0
            for application in row.applications:
                if application is chosen:
                    application.status = ApplicationStatus.ACCEPTED
                elif application.status == ApplicationStatus.PENDING:
                    application.status = ApplicationStatus.REJECTED
                    rejected += 1

            row.committed_volunteer_id = volunteer_id
            row.committed_at = now
            row.status = RequestStatus.ASSIGNED
            self.store.append_update(
                row,
                actor.user_id,
                "Volunteer assigned",
                RequestStatus.OPEN,
                RequestStatus.ASSIGNED,
                now,
            )

        record_commit_attempt(RequestKind.COMPLAINT.value, "won")
        record_status_transition(
            RequestKind.COMPLAINT.value, RequestStatus.OPEN.value, RequestStatus.ASSIGNED.value
        )
        logger.info(
            "Complaint %s assigned to %s (%s other applications rejected)",
            request_id,
            volunteer_id,
            rejected,
        )
        return reveal(to_record(row), actor)
