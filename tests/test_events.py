"""Tests for inbound payload parsing."""

import pytest

from app.constants.chat import Role
from app.core.events import InboundEvent, parse_payload
from app.exceptions import ValidationError
from app.schemas.events import JoinRoomPayload, SendMessagePayload


def test_join_room_positional_arguments():
    payload = parse_payload(
        InboundEvent.JOIN_ROOM, ("12345", "Alice", "student", None)
    )
    assert isinstance(payload, JoinRoomPayload)
    assert payload.session_id == "12345"
    assert payload.username == "Alice"
    assert payload.role is Role.STUDENT
    assert payload.persistent_student_id is None


def test_join_room_object_argument():
    payload = parse_payload(
        InboundEvent.JOIN_ROOM,
        ({"sessionId": 12345, "username": "Ms T", "role": "teacher"},),
    )
    assert payload.session_id == "12345"
    assert payload.role is Role.TEACHER


def test_join_room_requires_session_id():
    with pytest.raises(ValidationError) as exc:
        parse_payload(InboundEvent.JOIN_ROOM, ("", "Alice", "student"))
    assert exc.value.message == "Room ID is required"

    with pytest.raises(ValidationError) as exc:
        parse_payload(InboundEvent.JOIN_ROOM, ())
    assert exc.value.message == "Room ID is required"


def test_join_room_rejects_unknown_role():
    with pytest.raises(ValidationError) as exc:
        parse_payload(InboundEvent.JOIN_ROOM, ("12345", "Alice", "admin"))
    assert exc.value.message == "Invalid join_room payload"


def test_send_message_payload():
    payload = parse_payload(
        InboundEvent.SEND_MESSAGE,
        (
            {
                "sessionId": "12345",
                "message": {"sender": "Alice", "text": None},
                "recipient": "12345_bob_0000bbbb",
                "unexpected": True,
            },
        ),
    )
    assert isinstance(payload, SendMessagePayload)
    assert payload.message.text == ""
    assert payload.recipient == "12345_bob_0000bbbb"


def test_send_message_without_body_is_invalid():
    with pytest.raises(ValidationError) as exc:
        parse_payload(InboundEvent.SEND_MESSAGE, ({"sessionId": "12345"},))
    assert exc.value.message == "Invalid message format"

    with pytest.raises(ValidationError):
        parse_payload(InboundEvent.SEND_MESSAGE, ("not an object",))


def test_select_student_positional_arguments():
    payload = parse_payload(InboundEvent.SELECT_STUDENT, ("12345", "c-alice"))
    assert payload.student_id == "c-alice"

    with pytest.raises(ValidationError) as exc:
        parse_payload(InboundEvent.SELECT_STUDENT, (None, "c-alice"))
    assert exc.value.message == "Session ID is required"


def test_typing_defaults():
    payload = parse_payload(InboundEvent.TYPING, ({"sessionId": "12345"},))
    assert payload.is_typing is False


def test_disconnect_has_no_payload():
    assert parse_payload(InboundEvent.DISCONNECT, ("transport close",)) is None
