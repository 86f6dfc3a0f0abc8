"""Request store: creation, reads and status transitions of the request aggregate."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, List, Mapping, Optional, Sequence, Tuple, Union
from uuid import UUID, uuid4

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from assistlink.core.errors import (
    ActionForbidden,
    InvalidTransition,
    RequestNotFound,
    RequestValidationFailed,
)
from assistlink.core.locks import KeyedLock, request_locks
from assistlink.core.metrics import record_status_transition
from assistlink.core.security import AuthContext
from assistlink.models.auth import User
from assistlink.models.requests import (
    ApplicationStatus,
    RequestKind,
    RequestSource,
    RequestStatus,
    RequestUpdate,
    ServiceRequest,
    VolunteerApplication,
    utcnow,
)
from assistlink.schemas.requests import (
    ApplicationEntry,
    BloodRequestCreate,
    BloodRequestRecord,
    Commitment,
    CommitmentSummary,
    ComplaintCreate,
    ComplaintRecord,
    Contact,
    Coordinates,
    ElderSupportCreate,
    ElderSupportRecord,
    Location,
    RequestEdit,
    RequestSummary,
    StatusChange,
    UpdateEntry,
    parse_create_payload,
    parse_edit_payload,
)
from assistlink.services.disclosure import reveal, reveal_all
from assistlink.services.lifecycle import (
    INITIAL_STATUS,
    KIND_STATUSES,
    OWNER_TARGETS,
    check_edge,
    is_commit_edge,
    status_change_message,
)

logger = logging.getLogger(__name__)

Record = Union[BloodRequestRecord, ElderSupportRecord, ComplaintRecord]

SORT_ORDERS = {
    "newest": (ServiceRequest.created_at.desc(), ServiceRequest.id.desc()),
    "oldest": (ServiceRequest.created_at.asc(), ServiceRequest.id.asc()),
    "updated": (ServiceRequest.updated_at.desc(), ServiceRequest.id.desc()),
}

OPEN_STATUSES = (RequestStatus.OPEN, RequestStatus.PENDING)
ACTIVE_STATUSES = (RequestStatus.ACCEPTED, RequestStatus.ASSIGNED, RequestStatus.IN_PROGRESS)
DONE_STATUSES = (RequestStatus.COMPLETED, RequestStatus.RESOLVED, RequestStatus.CLOSED)

COMMON_EDIT_FIELDS = frozenset({"requester_name", "location", "phone", "email"})
KIND_EDIT_FIELDS = {
    RequestKind.BLOOD: frozenset({"urgency_level"}),
    RequestKind.ELDER_SUPPORT: frozenset({"service_type", "due_date", "urgency_level"}),
    RequestKind.COMPLAINT: frozenset({"title", "description", "category", "priority"}),
}
# Fields an edit may clear by sending null.
CLEARABLE_EDIT_FIELDS = frozenset({"location", "email", "due_date"})


def _location(row: ServiceRequest) -> Location:
    coordinates = None
    if row.latitude is not None and row.longitude is not None:
        coordinates = Coordinates(lat=row.latitude, lon=row.longitude)
    return Location(
        street=row.street,
        city=row.city,
        state=row.state,
        postal_code=row.postal_code,
        coordinates=coordinates,
    )


def _apply_location(row: ServiceRequest, location: Optional[Location]) -> None:
    location = location or Location()
    coordinates = location.coordinates
    row.street = location.street
    row.city = location.city
    row.state = location.state
    row.postal_code = location.postal_code
    row.latitude = coordinates.lat if coordinates else None
    row.longitude = coordinates.lon if coordinates else None


def _update_entry(update: RequestUpdate) -> UpdateEntry:
    status_change = None
    if update.from_status and update.to_status:
        status_change = StatusChange(from_status=update.from_status, to_status=update.to_status)
    return UpdateEntry(
        author_id=update.author_id,
        message=update.message,
        created_at=update.created_at,
        status_change=status_change,
    )


def to_record(row: ServiceRequest) -> Record:
    """Snapshot an ORM row as the immutable record for its kind."""
    commitment = None
    if row.committed_volunteer_id is not None:
        commitment = Commitment(volunteer_id=row.committed_volunteer_id, committed_at=row.committed_at)

    common: dict[str, Any] = dict(
        id=row.id,
        requester_id=row.requester_id,
        requester_name=row.requester_name,
        status=row.status,
        location=_location(row),
        contact=Contact(phone=row.contact_phone, email=row.contact_email),
        commitment=commitment,
        updates=tuple(_update_entry(update) for update in row.updates),
        source=row.source,
        created_at=row.created_at,
        updated_at=row.updated_at,
        completed_at=row.completed_at,
    )

    if row.kind == RequestKind.BLOOD:
        return BloodRequestRecord(**common, blood_type=row.blood_type, urgency_level=row.priority)
    if row.kind == RequestKind.ELDER_SUPPORT:
        return ElderSupportRecord(
            **common,
            service_type=row.service_type,
            due_date=row.due_date,
            urgency_level=row.priority,
        )
    if row.kind == RequestKind.COMPLAINT:
        return ComplaintRecord(
            **common,
            title=row.title,
            description=row.description,
            category=row.category,
            priority=row.priority,
            applications=tuple(
                ApplicationEntry(
                    volunteer_id=application.volunteer_id,
                    message=application.message,
                    estimated_time=application.estimated_time,
                    applied_at=application.applied_at,
                    status=application.status,
                )
                for application in row.applications
            ),
        )
    raise ValueError(f"Unknown request kind {row.kind!r}")


class RequestStore:
    """
    Owns every write to the request aggregate.

    Each mutating operation holds the per-request lock, runs in one
    transaction and commits before returning; any error rolls the whole
    operation back. Reads take no lock and return disclosure-filtered
    snapshots.
    """

    def __init__(self, db: AsyncSession, locks: KeyedLock = request_locks) -> None:
        self.db = db
        self.locks = locks

    @asynccontextmanager
    async def writing(self, request_id: UUID) -> AsyncIterator[None]:
        """Serialise writers on ``request_id`` and commit or roll back as one unit."""
        async with self.locks.hold(str(request_id)):
            try:
                yield
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

    async def load(self, request_id: UUID, *, for_update: bool = False) -> ServiceRequest:
        """Fetch the row, raising RequestNotFound. Write paths lock it and bypass the identity map."""
        stmt = select(ServiceRequest).where(ServiceRequest.id == request_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            raise RequestNotFound(f"Request {request_id} not found")
        return row

    @staticmethod
    def append_update(
        row: ServiceRequest,
        author_id: UUID,
        message: str,
        from_status: Optional[RequestStatus] = None,
        to_status: Optional[RequestStatus] = None,
        at: Optional[datetime] = None,
    ) -> None:
        at = at or utcnow()
        row.updates.append(
            RequestUpdate(
                author_id=author_id,
                message=message,
                from_status=from_status.value if from_status else None,
                to_status=to_status.value if to_status else None,
                created_at=at,
            )
        )
        row.updated_at = at

    async def create(
        self,
        requester: AuthContext,
        fields: Union[Mapping[str, Any], BaseModel],
        source: RequestSource = RequestSource.MANUAL,
    ) -> Record:
        """Create a request in its initial status. Name, phone and address default from the profile."""
        payload = parse_create_payload(fields)

        profile = await self.db.get(User, requester.user_id)
        if profile is None or not profile.is_active:
            raise ActionForbidden("Requester account is missing or inactive")

        phone = payload.phone or profile.phone
        if not phone:
            raise RequestValidationFailed(
                "A contact phone number is required",
                context={"errors": [{"field": "phone", "message": "Field required"}]},
            )

        location = payload.location or Location(
            street=profile.street,
            city=profile.city,
            state=profile.state,
            postal_code=profile.postal_code,
        )
        kind = RequestKind(payload.kind)
        now = utcnow()

        row = ServiceRequest(
            id=uuid4(),
            kind=kind,
            requester_id=requester.user_id,
            requester_name=payload.requester_name or profile.display_name,
            status=INITIAL_STATUS[kind],
            contact_phone=phone,
            contact_email=payload.email or profile.email,
            source=source,
            created_at=now,
            updated_at=now,
            applications=[],
            updates=[],
        )
        _apply_location(row, location)
        if isinstance(payload, BloodRequestCreate):
            row.blood_type = payload.blood_type
            row.priority = payload.urgency_level
        elif isinstance(payload, ElderSupportCreate):
            row.service_type = payload.service_type
            row.due_date = payload.due_date
            row.priority = payload.urgency_level
        elif isinstance(payload, ComplaintCreate):
            row.title = payload.title
            row.description = payload.description
            row.category = payload.category
            row.priority = payload.priority

        async with self.writing(row.id):
            self.db.add(row)

        logger.info(
            "Created %s request %s (priority=%s, source=%s)",
            kind.value,
            row.id,
            row.priority.value,
            source.value,
        )
        return reveal(to_record(row), requester)

    async def get(self, request_id: UUID, viewer: AuthContext) -> Record:
        row = await self.load(request_id)
        return reveal(to_record(row), viewer)

    async def _page(
        self,
        viewer: AuthContext,
        filters: Sequence[Any],
        page: int,
        limit: int,
        sort: str,
    ) -> Tuple[List[Record], int]:
        order = SORT_ORDERS.get(sort)
        if order is None:
            raise RequestValidationFailed(f"Unknown sort order '{sort}'")

        count_stmt = select(func.count()).select_from(ServiceRequest).where(*filters)
        total = (await self.db.execute(count_stmt)).scalar_one()

        stmt = (
            select(ServiceRequest)
            .where(*filters)
            .order_by(*order)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        rows = (await self.db.execute(stmt)).scalars().all()
        return reveal_all((to_record(row) for row in rows), viewer), total

    @staticmethod
    def _kind_status_filters(
        kind: Optional[RequestKind], status: Optional[RequestStatus]
    ) -> List[Any]:
        if kind is not None and status is not None and status not in KIND_STATUSES[kind]:
            raise RequestValidationFailed(
                f"A {kind.value} request is never {status.value}",
                context={"errors": [{"field": "status", "message": "Not a status of this kind"}]},
            )
        filters: List[Any] = []
        if kind is not None:
            filters.append(ServiceRequest.kind == kind)
        if status is not None:
            filters.append(ServiceRequest.status == status)
        return filters

    async def list_for_requester(
        self,
        viewer: AuthContext,
        *,
        kind: Optional[RequestKind] = None,
        status: Optional[RequestStatus] = None,
        page: int = 1,
        limit: int = 20,
        sort: str = "newest",
        include_all: bool = False,
    ) -> Tuple[List[Record], int]:
        """The viewer's own requests; admins may ask for every request."""
        if include_all and not viewer.is_admin:
            raise ActionForbidden("Only admins may list every request")
        filters = self._kind_status_filters(kind, status)
        if not include_all:
            filters.append(ServiceRequest.requester_id == viewer.user_id)
        return await self._page(viewer, filters, page, limit, sort)

    async def list_open(
        self,
        viewer: AuthContext,
        *,
        kind: Optional[RequestKind] = None,
        page: int = 1,
        limit: int = 20,
        sort: str = "newest",
    ) -> Tuple[List[Record], int]:
        """Volunteer feed: requests still awaiting a volunteer, excluding the viewer's own."""
        filters = self._kind_status_filters(kind, None)
        filters.append(ServiceRequest.status.in_(OPEN_STATUSES))
        filters.append(ServiceRequest.requester_id != viewer.user_id)
        return await self._page(viewer, filters, page, limit, sort)

    async def list_commitments(
        self,
        viewer: AuthContext,
        *,
        status: Optional[RequestStatus] = None,
        page: int = 1,
        limit: int = 20,
        sort: str = "updated",
    ) -> Tuple[List[Record], int]:
        """Requests the viewer has committed to or been assigned."""
        filters = self._kind_status_filters(None, status)
        filters.append(ServiceRequest.committed_volunteer_id == viewer.user_id)
        return await self._page(viewer, filters, page, limit, sort)

    async def summary(self, viewer: AuthContext) -> RequestSummary:
        """Counts of the viewer's own requests by status and by kind."""
        owned = ServiceRequest.requester_id == viewer.user_id
        by_status_rows = await self.db.execute(
            select(ServiceRequest.status, func.count()).where(owned).group_by(ServiceRequest.status)
        )
        by_kind_rows = await self.db.execute(
            select(ServiceRequest.kind, func.count()).where(owned).group_by(ServiceRequest.kind)
        )
        by_status = {status.value: count for status, count in by_status_rows.all()}
        by_kind = {kind.value: count for kind, count in by_kind_rows.all()}
        return RequestSummary(total=sum(by_kind.values()), by_status=by_status, by_kind=by_kind)

    async def commitment_summary(self, viewer: AuthContext) -> CommitmentSummary:
        """Counts of what the viewer has taken on, for the volunteer dashboard."""
        rows = await self.db.execute(
            select(ServiceRequest.kind, ServiceRequest.status, func.count())
            .where(ServiceRequest.committed_volunteer_id == viewer.user_id)
            .group_by(ServiceRequest.kind, ServiceRequest.status)
        )
        pending_applications = (
            await self.db.execute(
                select(func.count())
                .select_from(VolunteerApplication)
                .where(
                    VolunteerApplication.volunteer_id == viewer.user_id,
                    VolunteerApplication.status == ApplicationStatus.PENDING,
                )
            )
        ).scalar_one()

        active = completed = 0
        by_kind: dict[str, int] = {}
        completed_by_kind: dict[str, int] = {}
        for kind, status, count in rows.all():
            by_kind[kind.value] = by_kind.get(kind.value, 0) + count
            if status in ACTIVE_STATUSES:
                active += count
            elif status in DONE_STATUSES:
                completed += count
                completed_by_kind[kind.value] = completed_by_kind.get(kind.value, 0) + count

        return CommitmentSummary(
            total=sum(by_kind.values()),
            active=active,
            completed=completed,
            by_kind=by_kind,
            completed_by_kind=completed_by_kind,
            pending_applications=pending_applications,
        )

    @staticmethod
    def _authorize_transition(row: ServiceRequest, target: RequestStatus, actor: AuthContext) -> None:
        if actor.is_admin or row.requester_id == actor.user_id:
            return
        if target in OWNER_TARGETS:
            raise ActionForbidden(f"Only the requester or an admin may move this request to {target.value}")
        if row.committed_volunteer_id is not None and row.committed_volunteer_id == actor.user_id:
            return
        raise ActionForbidden("Only the requester, the committed volunteer or an admin may change this request")

    async def transition(
        self,
        request_id: UUID,
        target: RequestStatus,
        actor: AuthContext,
        message: Optional[str] = None,
    ) -> Record:
        """
        Move a request along its status graph.

        The graph is checked before the actor, so an impossible edge is always
        reported as InvalidTransition. Commitment edges are taken only through
        the matching engine.
        """
        target = RequestStatus(target)
        async with self.writing(request_id):
            row = await self.load(request_id, for_update=True)
            current = row.status

            if is_commit_edge(row.kind, current, target):
                raise InvalidTransition(
                    "A volunteer is committed by volunteering or by assignment, not by a status change",
                    context={"from": current.value, "to": target.value},
                )
            check_edge(row.kind, current, target)
            self._authorize_transition(row, target, actor)

            now = utcnow()
            if target == RequestStatus.CANCELLED:
                row.committed_volunteer_id = None
                row.committed_at = None
                for application in row.applications:
                    if application.status != ApplicationStatus.REJECTED:
                        application.status = ApplicationStatus.REJECTED
            if target in (RequestStatus.COMPLETED, RequestStatus.RESOLVED):
                row.completed_at = now

            row.status = target
            self.append_update(
                row,
                actor.user_id,
                message or status_change_message(current, target),
                current,
                target,
                now,
            )

        record_status_transition(row.kind.value, current.value, target.value)
        logger.info(
            "Request %s moved from %s to %s by %s",
            request_id,
            current.value,
            target.value,
            actor.user_id,
        )
        return reveal(to_record(row), actor)

    async def add_update(self, request_id: UUID, actor: AuthContext, message: str) -> Record:
        """Append a free-text progress note from a participant."""
        async with self.writing(request_id):
            row = await self.load(request_id, for_update=True)
            participant = (
                actor.is_admin
                or row.requester_id == actor.user_id
                or row.committed_volunteer_id == actor.user_id
            )
            if not participant:
                raise ActionForbidden("Only participants may post updates on this request")
            self.append_update(row, actor.user_id, message)

        return reveal(to_record(row), actor)

    async def update(
        self,
        request_id: UUID,
        actor: AuthContext,
        fields: Union[Mapping[str, Any], BaseModel],
    ) -> Record:
        """
        Edit a request nobody has taken on yet; requester or admin only.

        Kind and blood type never change. Fields that do not belong to the
        stored kind are rejected, and so is any edit once the request has
        left ``pending``/``open``.
        """
        edit: RequestEdit = parse_edit_payload(fields)
        changed = set(edit.model_fields_set)
        if not changed:
            raise RequestValidationFailed("Nothing to update")

        async with self.writing(request_id):
            row = await self.load(request_id, for_update=True)
            if row.status not in OPEN_STATUSES:
                raise InvalidTransition(
                    f"A {row.status.value} request can no longer be edited",
                    context={"status": row.status.value},
                )
            if not (actor.is_admin or row.requester_id == actor.user_id):
                raise ActionForbidden("Only the requester or an admin may edit this request")

            errors = [
                {"field": name, "message": f"Not editable on a {row.kind.value} request"}
                for name in sorted(changed - COMMON_EDIT_FIELDS - KIND_EDIT_FIELDS[row.kind])
            ]
            errors += [
                {"field": name, "message": "May not be null"}
                for name in sorted(changed - CLEARABLE_EDIT_FIELDS)
                if getattr(edit, name) is None
            ]
            if errors:
                raise RequestValidationFailed("Request edit is invalid", context={"errors": errors})

            for name in changed:
                value = getattr(edit, name)
                if name == "location":
                    _apply_location(row, value)
                elif name == "phone":
                    row.contact_phone = value
                elif name == "email":
                    row.contact_email = value
                elif name in ("urgency_level", "priority"):
                    row.priority = value
                else:
                    setattr(row, name, value)
            row.updated_at = utcnow()

        logger.info(
            "Request %s edited by %s (%s)", request_id, actor.user_id, ", ".join(sorted(changed))
        )
        return reveal(to_record(row), actor)

    async def delete(self, request_id: UUID, actor: AuthContext) -> None:
        """Irreversibly remove a request; requester or admin only, whatever its status."""
        async with self.writing(request_id):
            row = await self.load(request_id, for_update=True)
            if not (actor.is_admin or row.requester_id == actor.user_id):
                raise ActionForbidden("Only the requester or an admin may delete this request")
            await self.db.delete(row)

        logger.info("Request %s deleted by %s", request_id, actor.user_id)
