"""Tests for MessageService and the visibility rules behind it."""

import pytest

from app.constants.chat import AI_SENDER, MessageType, Role, SYSTEM_SENDER
from app.schemas.chat import ChatMessage
from app.services.message_service import MessageService

ALICE = "12345_alice_0000aaaa"
BOB = "12345_bob_0000bbbb"
TEACHER_CONN = "teacher-conn"


@pytest.fixture
def classroom(setup_session, make_message):
    """One message of each kind, keyed by a short label."""
    sid = setup_session.session_id
    return {
        "system_broadcast": make_message(
            sid, SYSTEM_SENDER, Role.SYSTEM, type=MessageType.NOTIFICATION.value
        ),
        "teacher_to_alice": make_message(sid, TEACHER_CONN, Role.TEACHER, ALICE),
        "teacher_broadcast": make_message(sid, TEACHER_CONN, Role.TEACHER),
        "alice_says": make_message(sid, ALICE, Role.STUDENT, sender_name="Alice"),
        "bob_says": make_message(sid, BOB, Role.STUDENT, sender_name="Bob"),
        "ai_to_alice": make_message(sid, AI_SENDER, Role.AI, ALICE),
        "teacher_to_bob": make_message(sid, TEACHER_CONN, Role.TEACHER, BOB),
        "bob_joined": make_message(
            sid,
            SYSTEM_SENDER,
            Role.STUDENT,
            type=MessageType.NOTIFICATION.value,
            text="Bob has joined as student",
        ),
    }


def _labels(classroom, messages):
    by_id = {m.id: label for label, m in classroom.items()}
    return [by_id[m.id] for m in messages]


def test_save_message_round_trip(db, setup_session):
    svc = MessageService(db)
    data = ChatMessage(
        id="1700000000000_deadbeef",
        session_id=setup_session.session_id,
        sender=ALICE,
        sender_name="Alice",
        text="hello",
        timestamp="2026-01-01T10:00:00.000000Z",
        type=MessageType.MESSAGE,
        role=Role.STUDENT,
        recipient=None,
    )
    svc.save_message(data)

    stored = svc.get_session_messages(setup_session.session_id)
    assert [ChatMessage.model_validate(m) for m in stored] == [data]


def test_save_message_replaces_malformed_id(db, setup_session):
    svc = MessageService(db)
    msg = svc.save_message(
        ChatMessage(
            id="client-id",
            session_id=setup_session.session_id,
            sender=ALICE,
            text="hi",
            timestamp="2026-01-01T10:00:00.000000Z",
        )
    )
    assert msg.id != "client-id"
    assert "_" in msg.id


def test_session_messages_ordered_by_timestamp(db, setup_session, make_message):
    sid = setup_session.session_id
    late = make_message(sid, ALICE, Role.STUDENT, timestamp="2026-01-01T11:00:00.000000Z")
    early = make_message(sid, ALICE, Role.STUDENT, timestamp="2026-01-01T09:00:00.000000Z")

    messages = MessageService(db).get_session_messages(sid)
    assert [m.id for m in messages] == [early.id, late.id]


def test_student_history_visibility(db, setup_session, classroom):
    svc = MessageService(db)
    sid = setup_session.session_id

    alice = _labels(classroom, svc.get_student_relevant_messages(sid, ALICE))
    assert alice == [
        "system_broadcast",
        "teacher_to_alice",
        "teacher_broadcast",
        "alice_says",
        "ai_to_alice",
    ]

    bob = _labels(classroom, svc.get_student_relevant_messages(sid, BOB))
    assert bob == ["system_broadcast", "teacher_broadcast", "bob_says", "teacher_to_bob"]


def test_student_history_never_leaks_other_private_threads(db, setup_session, classroom):
    svc = MessageService(db)
    for viewer in (ALICE, BOB):
        for msg in svc.get_student_relevant_messages(setup_session.session_id, viewer):
            if msg.recipient is not None:
                assert msg.recipient == viewer
            if msg.role == Role.STUDENT.value:
                assert msg.sender == viewer


def test_teacher_audit_view(db, setup_session, classroom):
    svc = MessageService(db)
    audit = _labels(
        classroom, svc.get_student_messages(setup_session.session_id, ALICE, "Alice")
    )
    assert audit == [
        "system_broadcast",
        "teacher_to_alice",
        "alice_says",
        "ai_to_alice",
        "bob_joined",
    ]


def test_audit_matches_sender_name(db, setup_session, make_message):
    sid = setup_session.session_id
    # Sent before the student had a persistent id
    msg = make_message(sid, "raw-conn-id", Role.STUDENT, sender_name="Alice")
    svc = MessageService(db)
    assert [m.id for m in svc.get_student_messages(sid, ALICE, "Alice")] == [msg.id]
    assert svc.get_student_messages(sid, ALICE) == []


def test_history_is_scoped_to_session(db, setup_session, make_message):
    make_message("99999", TEACHER_CONN, Role.TEACHER)
    svc = MessageService(db)
    assert svc.get_student_relevant_messages(setup_session.session_id, ALICE) == []
    assert svc.get_session_messages(setup_session.session_id) == []
