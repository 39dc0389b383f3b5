from __future__ import annotations

from uuid import uuid4

import pytest

from loadtally.domain.errors import InvalidTransition
from loadtally.domain.model import SessionStatus
from tests.helpers.inventory import make_session


def test_draft_can_activate_then_close() -> None:
    session = make_session(status=SessionStatus.DRAFT)

    assert session.transition(SessionStatus.ACTIVE, actor="alice") is True
    assert session.transition(SessionStatus.CLOSED, actor="bob") is True

    assert session.is_closed
    assert session.closed_by == "bob"
    assert session.closed_at is not None
    assert session.updated_by == "bob"


def test_draft_can_close_directly() -> None:
    session = make_session(status=SessionStatus.DRAFT)

    session.transition(SessionStatus.CLOSED, actor=None)

    assert session.status is SessionStatus.CLOSED


def test_same_status_is_a_no_op() -> None:
    session = make_session(status=SessionStatus.ACTIVE)
    before = session.updated_at

    assert session.transition(SessionStatus.ACTIVE, actor="alice") is False
    assert session.updated_at == before


def test_active_cannot_return_to_draft() -> None:
    session = make_session(status=SessionStatus.ACTIVE)

    with pytest.raises(InvalidTransition):
        session.transition(SessionStatus.DRAFT, actor="alice")


@pytest.mark.parametrize("requested", list(SessionStatus))
def test_closed_session_rejects_every_transition(requested: SessionStatus) -> None:
    session = make_session(status=SessionStatus.CLOSED)

    with pytest.raises(InvalidTransition):
        session.transition(requested, actor="alice")


def test_record_scan_is_set_semantics() -> None:
    session = make_session()
    item_id = uuid4()

    assert session.record_scan(item_id, actor="alice") is True
    assert session.record_scan(item_id, actor="alice") is False
    assert session.scanned_count == 1


@pytest.mark.parametrize("status", [SessionStatus.DRAFT, SessionStatus.CLOSED])
def test_record_scan_requires_active_session(status: SessionStatus) -> None:
    session = make_session(status=status)

    with pytest.raises(InvalidTransition):
        session.record_scan(uuid4(), actor="alice")
    assert session.scanned_count == 0
