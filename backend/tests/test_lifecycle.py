"""Tests for the request status graph."""

import itertools

import pytest

from assistlink.core.errors import InvalidTransition
from assistlink.models.requests import RequestKind, RequestStatus as S
from assistlink.services.lifecycle import (
    COMMITTED_STATUS,
    INITIAL_STATUS,
    KIND_STATUSES,
    TERMINAL_STATUSES,
    allowed_targets,
    check_edge,
    is_commit_edge,
    status_change_message,
)

EXPECTED_EDGES = {
    RequestKind.BLOOD: {
        (S.PENDING, S.ACCEPTED),
        (S.PENDING, S.CANCELLED),
        (S.ACCEPTED, S.COMPLETED),
        (S.ACCEPTED, S.CANCELLED),
    },
    RequestKind.ELDER_SUPPORT: {
        (S.PENDING, S.ACCEPTED),
        (S.PENDING, S.CANCELLED),
        (S.ACCEPTED, S.IN_PROGRESS),
        (S.ACCEPTED, S.CANCELLED),
        (S.IN_PROGRESS, S.COMPLETED),
        (S.IN_PROGRESS, S.CANCELLED),
    },
    RequestKind.COMPLAINT: {
        (S.OPEN, S.ASSIGNED),
        (S.OPEN, S.CANCELLED),
        (S.ASSIGNED, S.IN_PROGRESS),
        (S.ASSIGNED, S.CANCELLED),
        (S.IN_PROGRESS, S.RESOLVED),
        (S.IN_PROGRESS, S.CANCELLED),
        (S.RESOLVED, S.CLOSED),
    },
}


@pytest.mark.parametrize("kind", list(RequestKind))
def test_graph_is_exactly_the_expected_edges(kind):
    for current, target in itertools.product(S, S):
        expected = (current, target) in EXPECTED_EDGES[kind]
        assert (target in allowed_targets(kind, current)) is expected, (kind, current, target)

        if expected:
            check_edge(kind, current, target)
        else:
            with pytest.raises(InvalidTransition):
                check_edge(kind, current, target)


@pytest.mark.parametrize("kind", list(RequestKind))
def test_terminal_statuses_have_no_exits(kind):
    for terminal in TERMINAL_STATUSES & KIND_STATUSES[kind]:
        assert allowed_targets(kind, terminal) == frozenset()


def test_kind_vocabularies():
    assert KIND_STATUSES[RequestKind.BLOOD] == {S.PENDING, S.ACCEPTED, S.COMPLETED, S.CANCELLED}
    assert S.OPEN not in KIND_STATUSES[RequestKind.ELDER_SUPPORT]
    assert S.COMPLETED not in KIND_STATUSES[RequestKind.COMPLAINT]


def test_commit_edges():
    for kind in RequestKind:
        assert is_commit_edge(kind, INITIAL_STATUS[kind], COMMITTED_STATUS[kind])
    assert not is_commit_edge(RequestKind.BLOOD, S.PENDING, S.CANCELLED)
    assert not is_commit_edge(RequestKind.COMPLAINT, S.ASSIGNED, S.IN_PROGRESS)


def test_invalid_transition_carries_edge_context():
    with pytest.raises(InvalidTransition) as exc:
        check_edge(RequestKind.BLOOD, S.PENDING, S.COMPLETED)

    assert exc.value.context == {"from": "pending", "to": "completed"}
    assert exc.value.status_code == 409


def test_terminal_message_is_explicit():
    with pytest.raises(InvalidTransition) as exc:
        check_edge(RequestKind.COMPLAINT, S.CLOSED, S.OPEN)

    assert "no further status changes" in exc.value.detail


def test_status_change_message():
    assert status_change_message(S.OPEN, S.ASSIGNED) == "Status changed from open to assigned"
