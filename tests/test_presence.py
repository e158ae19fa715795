"""Tests for PresenceCache hydration and roster bookkeeping."""

import asyncio

import pytest

from app.constants.chat import Role, StudentStatus
from app.core.presence import PresenceCache
from app.exceptions import StorageError
from app.schemas.chat import ChatMessage, StudentSnapshot
from app.services.chat_store import StoreResult


def _snapshot(session_id, persistent_id, connection_id, username="alice", **kwargs):
    return StudentSnapshot(
        id=connection_id,
        persistent_id=persistent_id,
        session_id=session_id,
        username=username,
        **kwargs,
    )


class FlakyStore:
    """Store double whose first roster load fails."""

    def __init__(self, students):
        self.students = students
        self.calls = 0

    async def get_session_students(self, session_id):
        self.calls += 1
        if self.calls == 1:
            return StoreResult.failure(StorageError("Failed to load students"))
        return StoreResult.success(list(self.students))


class SlowStore:
    """Store double that yields to the loop before answering."""

    def __init__(self, students):
        self.students = students

    async def get_session_students(self, session_id):
        await asyncio.sleep(0)
        return StoreResult.success(list(self.students))


@pytest.mark.asyncio
async def test_load_students_hydrates_from_storage(presence, setup_student):
    sid = setup_student.session_id
    students = await presence.load_students(sid)
    assert [s.persistent_id for s in students] == [setup_student.persistent_id]
    assert students[0].id == setup_student.socket_id
    assert students[0].status is StudentStatus.OFFLINE


@pytest.mark.asyncio
async def test_load_history_hydrates_from_storage(presence, setup_session, make_message):
    msg = make_message(setup_session.session_id, "teacher-conn", Role.TEACHER)
    history = await presence.load_history(setup_session.session_id)
    assert [m.id for m in history] == [msg.id]


@pytest.mark.asyncio
async def test_non_empty_entry_is_not_rehydrated(presence, setup_student):
    sid = setup_student.session_id
    live = _snapshot(sid, "live-id", "live-conn")
    presence.upsert_student(sid, live)

    students = await presence.load_students(sid)
    assert [s.persistent_id for s in students] == ["live-id"]


@pytest.mark.asyncio
async def test_hydration_does_not_clobber_concurrent_write():
    stored = _snapshot("12345", "stored-id", "old-conn")
    presence = PresenceCache(SlowStore([stored]))

    async def write_while_loading():
        presence.upsert_student("12345", _snapshot("12345", "fresh-id", "new-conn"))

    await asyncio.gather(presence.load_students("12345"), write_while_loading())
    assert [s.persistent_id for s in presence.students("12345")] == ["fresh-id"]


@pytest.mark.asyncio
async def test_failed_hydration_is_not_cached():
    stored = _snapshot("12345", "stored-id", "conn")
    store = FlakyStore([stored])
    presence = PresenceCache(store)

    with pytest.raises(StorageError):
        await presence.load_students("12345")
    assert presence.students("12345") == []

    students = await presence.load_students("12345")
    assert [s.persistent_id for s in students] == ["stored-id"]
    assert store.calls == 2


def test_upsert_matches_persistent_or_connection_id(presence):
    presence.upsert_student("12345", _snapshot("12345", "p1", "c1"))
    presence.upsert_student("12345", _snapshot("12345", "p1", "c2", status=StudentStatus.ACTIVE))
    presence.upsert_student("12345", _snapshot("12345", "p2", "c3", username="bob"))

    roster = presence.students("12345")
    assert [(s.persistent_id, s.id) for s in roster] == [("p1", "c2"), ("p2", "c3")]
    assert roster[0].status is StudentStatus.ACTIVE


def test_find_and_remove(presence):
    presence.upsert_student("12345", _snapshot("12345", "p1", "c1"))
    presence.upsert_student("12345", _snapshot("12345", "p2", "c2", username="bob"))

    assert presence.find_student("12345", connection_id="c2").persistent_id == "p2"
    assert presence.find_student("12345", persistent_id="p1").id == "c1"
    assert presence.find_student("12345", "missing", "missing") is None

    presence.remove_student("12345", connection_id="c1")
    assert [s.persistent_id for s in presence.students("12345")] == ["p2"]


def test_teacher_slot(presence):
    presence.set_teacher("12345", "t1")
    presence.set_teacher("12345", "t2")
    assert presence.get_teacher("12345") == "t2"

    # A stale connection does not free the slot it no longer holds
    presence.clear_teacher("12345", "t1")
    assert presence.get_teacher("12345") == "t2"

    presence.clear_teacher("12345", "t2")
    assert presence.get_teacher("12345") is None


def test_append_message_only_extends_hydrated_history(presence):
    msg = ChatMessage(
        id="1_abc",
        session_id="12345",
        sender="system",
        timestamp="2026-01-01T10:00:00.000000Z",
    )
    presence.append_message(msg)
    assert "12345" not in presence._history


def test_clear_session(presence):
    presence.upsert_student("12345", _snapshot("12345", "p1", "c1"))
    presence.set_teacher("12345", "t1")
    presence.clear_session("12345")
    assert presence.students("12345") == []
    assert presence.get_teacher("12345") is None


@pytest.mark.asyncio
async def test_append_message_keeps_timestamp_order(presence, setup_session):
    sid = setup_session.session_id
    await presence.load_history(sid)

    def _msg(msg_id, timestamp):
        return ChatMessage(id=msg_id, session_id=sid, sender="system", timestamp=timestamp)

    presence.append_message(_msg("1_b", "2026-01-01T10:00:02.000000Z"))
    presence.append_message(_msg("1_c", "2026-01-01T10:00:03.000000Z"))
    presence.append_message(_msg("1_a", "2026-01-01T10:00:01.000000Z"))
    presence.append_message(_msg("1_b2", "2026-01-01T10:00:02.000000Z"))

    history = await presence.load_history(sid)
    assert [m.id for m in history] == ["1_a", "1_b", "1_b2", "1_c"]
