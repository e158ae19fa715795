"""Typed inbound/outbound events and per-connection state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Optional

import pydantic

from app.constants.chat import Role
from app.exceptions import ValidationError
from app.schemas.events import (
    EventPayload,
    JoinRoomPayload,
    KickStudentPayload,
    LeaveRoomPayload,
    SelectStudentPayload,
    SendMessagePayload,
    TypingPayload,
)


class InboundEvent(StrEnum):
    JOIN_ROOM = "join_room"
    SEND_MESSAGE = "send_message"
    TYPING = "typing"
    SELECT_STUDENT = "select_student"
    KICK_STUDENT = "kick_student"
    LEAVE_ROOM = "leave_room"
    DISCONNECT = "disconnect"


class OutboundEvent(StrEnum):
    MESSAGE = "message"
    CHAT_HISTORY = "chat_history"
    STUDENT_LIST = "student_list"
    STUDENT_CHAT_HISTORY = "student_chat_history"
    USER_TYPING = "user_typing"
    STUDENT_KICKED = "student_kicked"
    KICKED_FROM_SESSION = "kicked_from_session"
    ERROR = "error"


class ConnectionPhase(StrEnum):
    UNJOINED = "unjoined"
    JOINED = "joined"
    LEFT = "left"
    DISCONNECTED = "disconnected"


@dataclass
class ConnectionState:
    connection_id: str
    phase: ConnectionPhase = ConnectionPhase.UNJOINED
    session_id: Optional[str] = None
    username: Optional[str] = None
    role: Optional[Role] = None
    persistent_id: Optional[str] = None

    @property
    def joined(self) -> bool:
        return self.phase is ConnectionPhase.JOINED

    @property
    def is_teacher(self) -> bool:
        return self.joined and self.role is Role.TEACHER

    @property
    def student_ref(self) -> str:
        """Persistent id when known, else the raw connection id."""
        return self.persistent_id or self.connection_id


@dataclass(frozen=True)
class Delivery:
    """One outbound event addressed to a connection id or a session room."""

    to: str
    event: OutboundEvent
    payload: Any


_PAYLOAD_MODELS: dict[InboundEvent, type[EventPayload]] = {
    InboundEvent.JOIN_ROOM: JoinRoomPayload,
    InboundEvent.SEND_MESSAGE: SendMessagePayload,
    InboundEvent.TYPING: TypingPayload,
    InboundEvent.SELECT_STUDENT: SelectStudentPayload,
    InboundEvent.KICK_STUDENT: KickStudentPayload,
    InboundEvent.LEAVE_ROOM: LeaveRoomPayload,
}

# Events whose clients send positional arguments instead of one object
_POSITIONAL_ARGS: dict[InboundEvent, tuple[str, ...]] = {
    InboundEvent.JOIN_ROOM: ("sessionId", "username", "role", "persistentStudentId"),
    InboundEvent.SELECT_STUDENT: ("sessionId", "studentId"),
    InboundEvent.LEAVE_ROOM: ("sessionId", "username", "studentId"),
}


def parse_payload(event: InboundEvent, args: tuple[Any, ...]) -> Optional[EventPayload]:
    """Validate raw transport arguments into the event's payload model."""
    model = _PAYLOAD_MODELS.get(event)
    if model is None:
        return None
    if event in _POSITIONAL_ARGS and not (len(args) == 1 and isinstance(args[0], dict)):
        data = {
            name: value
            for name, value in zip(_POSITIONAL_ARGS[event], args)
            if value is not None
        }
    elif args and isinstance(args[0], dict):
        data = args[0]
    else:
        raise ValidationError(_invalid_message(event, {"sessionId"}))
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        fields = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
        raise ValidationError(_invalid_message(event, fields)) from e


def _invalid_message(event: InboundEvent, fields: set[str]) -> str:
    if event is InboundEvent.SEND_MESSAGE:
        return "Invalid message format"
    if fields & {"sessionId", "session_id"}:
        if event is InboundEvent.JOIN_ROOM:
            return "Room ID is required"
        return "Session ID is required"
    return f"Invalid {event.value} payload"
