"""Status state machine for service requests."""

from __future__ import annotations

from typing import Mapping

from assistlink.core.errors import InvalidTransition
from assistlink.models.requests import RequestKind, RequestStatus

S = RequestStatus

INITIAL_STATUS: Mapping[RequestKind, RequestStatus] = {
    RequestKind.BLOOD: S.PENDING,
    RequestKind.ELDER_SUPPORT: S.PENDING,
    RequestKind.COMPLAINT: S.OPEN,
}

COMMITTED_STATUS: Mapping[RequestKind, RequestStatus] = {
    RequestKind.BLOOD: S.ACCEPTED,
    RequestKind.ELDER_SUPPORT: S.ACCEPTED,
    RequestKind.COMPLAINT: S.ASSIGNED,
}

TRANSITIONS: Mapping[RequestKind, Mapping[RequestStatus, frozenset[RequestStatus]]] = {
    RequestKind.BLOOD: {
        S.PENDING: frozenset({S.ACCEPTED, S.CANCELLED}),
        S.ACCEPTED: frozenset({S.COMPLETED, S.CANCELLED}),
    },
    RequestKind.ELDER_SUPPORT: {
        S.PENDING: frozenset({S.ACCEPTED, S.CANCELLED}),
        S.ACCEPTED: frozenset({S.IN_PROGRESS, S.CANCELLED}),
        S.IN_PROGRESS: frozenset({S.COMPLETED, S.CANCELLED}),
    },
    RequestKind.COMPLAINT: {
        S.OPEN: frozenset({S.ASSIGNED, S.CANCELLED}),
        S.ASSIGNED: frozenset({S.IN_PROGRESS, S.CANCELLED}),
        S.IN_PROGRESS: frozenset({S.RESOLVED, S.CANCELLED}),
        S.RESOLVED: frozenset({S.CLOSED}),
    },
}

TERMINAL_STATUSES = frozenset({S.CANCELLED, S.CLOSED, S.COMPLETED})

# Only the requester or an admin may move a request into these.
OWNER_TARGETS = frozenset({S.CANCELLED, S.CLOSED})

KIND_STATUSES: Mapping[RequestKind, frozenset[RequestStatus]] = {
    kind: frozenset(graph) | frozenset(t for targets in graph.values() for t in targets)
    for kind, graph in TRANSITIONS.items()
}


def allowed_targets(kind: RequestKind, current: RequestStatus) -> frozenset[RequestStatus]:
    return TRANSITIONS[kind].get(current, frozenset())


def is_commit_edge(kind: RequestKind, current: RequestStatus, target: RequestStatus) -> bool:
    return current == INITIAL_STATUS[kind] and target == COMMITTED_STATUS[kind]


def check_edge(kind: RequestKind, current: RequestStatus, target: RequestStatus) -> None:
    """Raise InvalidTransition unless ``current -> target`` is an edge for ``kind``."""
    if current in TERMINAL_STATUSES:
        raise InvalidTransition(
            f"Request is {current.value}; no further status changes are allowed",
            context={"from": current.value, "to": target.value},
        )
    if target not in allowed_targets(kind, current):
        raise InvalidTransition(
            f"Cannot move a {kind.value} request from {current.value} to {target.value}",
            context={"from": current.value, "to": target.value},
        )


def status_change_message(current: RequestStatus, target: RequestStatus) -> str:
    return f"Status changed from {current.value} to {target.value}"
