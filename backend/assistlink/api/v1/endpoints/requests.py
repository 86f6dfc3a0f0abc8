"""
Service request endpoints: creation, listings, lifecycle and volunteering.
"""

import logging
from typing import Any, Dict, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from assistlink.core.database import get_db
from assistlink.core.security import AuthContext, get_current_user
from assistlink.models.auth import User
from assistlink.models.requests import Priority, RequestKind, RequestStatus
from assistlink.schemas.requests import (
    ApplicationCreate,
    AssignRequest,
    CommitmentSummary,
    RequestPage,
    RequestSummary,
    ServiceRequestRecord,
    TransitionRequest,
    UpdateCreate,
    priority_of,
)
from assistlink.services.matching import MatchingEngine
from assistlink.services.request_store import RequestStore
from assistlink.utils.notifications import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter()

SortOrder = Literal["newest", "oldest", "updated"]


def get_request_store(db: AsyncSession = Depends(get_db)) -> RequestStore:
    return RequestStore(db)


def get_matching_engine(store: RequestStore = Depends(get_request_store)) -> MatchingEngine:
    return MatchingEngine(store)


def schedule_urgent_alert(background_tasks: BackgroundTasks, record) -> None:
    """Queue the coordinators' Slack alert for a newly created urgent request."""
    if priority_of(record) != Priority.URGENT:
        return
    background_tasks.add_task(
        NotificationService.notify_urgent_request,
        record.kind,
        str(record.id),
        record.location.city,
    )


@router.post("", response_model=ServiceRequestRecord, status_code=status.HTTP_201_CREATED)
async def create_request(
    background_tasks: BackgroundTasks,
    payload: Dict[str, Any] = Body(
        ...,
        examples=[
            {"kind": "blood", "blood_type": "O+", "urgency_level": "urgent", "phone": "+91 98765 43210"},
            {"kind": "complaint", "title": "Street light broken", "description": "The light on 5th street has been out for a week"},
        ],
    ),
    auth: AuthContext = Depends(get_current_user),
    store: RequestStore = Depends(get_request_store),
):
    """
    Create a blood, elder support or complaint request.

    The body is discriminated on ``kind``. Phone, email, name and address
    default to the caller's profile.
    """
    record = await store.create(auth, payload)
    schedule_urgent_alert(background_tasks, record)
    return record


@router.get("", response_model=RequestPage)
async def list_my_requests(
    kind: Optional[RequestKind] = None,
    request_status: Optional[RequestStatus] = Query(None, alias="status"),
    scope: Literal["mine", "all"] = "mine",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort: SortOrder = "newest",
    auth: AuthContext = Depends(get_current_user),
    store: RequestStore = Depends(get_request_store),
):
    """List the caller's own requests; admins may pass ``scope=all``."""
    items, total = await store.list_for_requester(
        auth,
        kind=kind,
        status=request_status,
        page=page,
        limit=limit,
        sort=sort,
        include_all=scope == "all",
    )
    return RequestPage(items=items, page=page, limit=limit, total=total)


@router.get("/public", response_model=RequestPage)
async def list_open_requests(
    kind: Optional[RequestKind] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort: SortOrder = "newest",
    auth: AuthContext = Depends(get_current_user),
    store: RequestStore = Depends(get_request_store),
):
    """Requests waiting for a volunteer, with contact details hidden."""
    items, total = await store.list_open(auth, kind=kind, page=page, limit=limit, sort=sort)
    return RequestPage(items=items, page=page, limit=limit, total=total)


@router.get("/committed", response_model=RequestPage)
async def list_committed_requests(
    request_status: Optional[RequestStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort: SortOrder = "updated",
    auth: AuthContext = Depends(get_current_user),
    store: RequestStore = Depends(get_request_store),
):
    """Requests the caller has volunteered for or been assigned."""
    items, total = await store.list_commitments(
        auth, status=request_status, page=page, limit=limit, sort=sort
    )
    return RequestPage(items=items, page=page, limit=limit, total=total)


@router.get("/committed/summary", response_model=CommitmentSummary)
async def committed_summary(
    auth: AuthContext = Depends(get_current_user),
    store: RequestStore = Depends(get_request_store),
):
    """Volunteer dashboard counts: active, completed and pending applications."""
    return await store.commitment_summary(auth)


@router.get("/summary", response_model=RequestSummary)
async def request_summary(
    auth: AuthContext = Depends(get_current_user),
    store: RequestStore = Depends(get_request_store),
):
    return await store.summary(auth)


@router.get("/{request_id}", response_model=ServiceRequestRecord)
async def get_request(
    request_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    store: RequestStore = Depends(get_request_store),
):
    return await store.get(request_id, auth)


@router.patch("/{request_id}", response_model=ServiceRequestRecord)
async def edit_request(
    request_id: UUID,
    payload: Dict[str, Any] = Body(
        ...,
        examples=[{"urgency_level": "high", "phone": "+91 90000 11111"}],
    ),
    auth: AuthContext = Depends(get_current_user),
    store: RequestStore = Depends(get_request_store),
):
    """
    Edit contact, location or kind-specific details while the request is
    still pending or open. ``kind`` and ``blood_type`` cannot be changed.
    """
    return await store.update(request_id, auth, payload)


@router.post("/{request_id}/transition", response_model=ServiceRequestRecord)
async def transition_request(
    request_id: UUID,
    body: TransitionRequest,
    auth: AuthContext = Depends(get_current_user),
    store: RequestStore = Depends(get_request_store),
):
    """Move a request along its status graph (cancel, start, complete, resolve, close)."""
    return await store.transition(request_id, body.target, auth, body.message)


@router.post("/{request_id}/updates", response_model=ServiceRequestRecord)
async def add_request_update(
    request_id: UUID,
    body: UpdateCreate,
    auth: AuthContext = Depends(get_current_user),
    store: RequestStore = Depends(get_request_store),
):
    return await store.add_update(request_id, auth, body.message)


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(
    request_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    store: RequestStore = Depends(get_request_store),
):
    await store.delete(request_id, auth)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{request_id}/volunteer", response_model=ServiceRequestRecord)
async def volunteer_for_request(
    request_id: UUID,
    background_tasks: BackgroundTasks,
    auth: AuthContext = Depends(get_current_user),
    engine: MatchingEngine = Depends(get_matching_engine),
    db: AsyncSession = Depends(get_db),
):
    """
    Commit to a blood or elder support request.

    Exactly one volunteer wins; everyone else gets 409 ALREADY_COMMITTED.
    """
    record = await engine.volunteer(request_id, auth)

    requester = await db.get(User, record.requester_id)
    helper = await db.get(User, auth.user_id)
    if requester is not None and helper is not None:
        background_tasks.add_task(
            NotificationService.notify_request_committed,
            requester.email,
            record.kind,
            helper.display_name,
            helper.phone,
        )
    return record


@router.post(
    "/{request_id}/applications",
    response_model=ServiceRequestRecord,
    status_code=status.HTTP_201_CREATED,
)
async def apply_to_complaint(
    request_id: UUID,
    body: ApplicationCreate,
    auth: AuthContext = Depends(get_current_user),
    engine: MatchingEngine = Depends(get_matching_engine),
):
    return await engine.apply(request_id, auth, body.message, body.estimated_time)


@router.post("/{request_id}/assign", response_model=ServiceRequestRecord)
async def assign_complaint(
    request_id: UUID,
    body: AssignRequest,
    background_tasks: BackgroundTasks,
    auth: AuthContext = Depends(get_current_user),
    engine: MatchingEngine = Depends(get_matching_engine),
    db: AsyncSession = Depends(get_db),
):
    """Accept one applicant; the other pending applications are rejected."""
    record = await engine.assign(request_id, body.volunteer_id, auth)

    assignee = await db.get(User, body.volunteer_id)
    if assignee is not None:
        background_tasks.add_task(
            NotificationService.notify_volunteer_assigned,
            assignee.email,
            record.title,
        )
    return record
