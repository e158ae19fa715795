"""
Wire shapes for chat records pushed over the event channel.

Field names are snake_case in Python and camelCase on the wire
(``senderName``, ``persistentId``, ``lastActive``, ...).
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.constants.chat import MessageType, Role, StudentStatus


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        coerce_numbers_to_str=True,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ChatMessage(WireModel):
    """A persisted message as stored, cached and emitted."""

    id: str
    session_id: str
    sender: str
    sender_name: Optional[str] = None
    text: str = ""
    timestamp: str
    type: MessageType = MessageType.MESSAGE
    role: Role = Role.SYSTEM
    recipient: Optional[str] = None


class StudentSnapshot(WireModel):
    """Roster entry. ``id`` is the current (possibly stale) connection id."""

    id: Optional[str] = None
    persistent_id: str
    session_id: str
    username: str
    status: StudentStatus = StudentStatus.ONLINE
    last_active: Optional[str] = None

    @classmethod
    def from_model(cls, student) -> "StudentSnapshot":
        return cls(
            id=student.socket_id,
            persistent_id=student.persistent_id,
            session_id=student.session_id,
            username=student.username,
            status=student.status,
            last_active=student.last_active,
        )


class StudentChatHistory(WireModel):
    student_id: str
    chat: list[ChatMessage]


class UserTyping(WireModel):
    username: Optional[str] = None
    is_typing: bool
    student_id: Optional[str] = None

    def to_wire(self) -> dict[str, Any]:
        # Teacher typing is relayed without a studentId key at all
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class StudentKicked(WireModel):
    student_id: Optional[str] = None
    success: bool
    message: Optional[str] = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class KickedFromSession(WireModel):
    message: str


class ErrorPayload(WireModel):
    message: str
