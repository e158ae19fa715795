"""Inbound event payloads received from the event channel."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.constants.chat import MessageType, Role


class EventPayload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )


class JoinRoomPayload(EventPayload):
    session_id: str = Field(min_length=1)
    username: Optional[str] = None
    role: Optional[Role] = None
    persistent_student_id: Optional[str] = None


class MessageBody(EventPayload):
    id: Optional[str] = None
    sender: Optional[str] = None
    text: str = ""
    timestamp: Optional[datetime] = None
    type: Optional[MessageType] = None
    role: Optional[Role] = None

    @field_validator("text", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)


class SendMessagePayload(EventPayload):
    session_id: str = Field(min_length=1)
    message: MessageBody
    recipient: Optional[str] = None
    student_id: Optional[str] = None


class TypingPayload(EventPayload):
    session_id: str = Field(min_length=1)
    username: Optional[str] = None
    is_typing: bool = False
    recipient: Optional[str] = None
    student_id: Optional[str] = None


class SelectStudentPayload(EventPayload):
    session_id: str = Field(min_length=1)
    student_id: str = Field(min_length=1)


class KickStudentPayload(EventPayload):
    session_id: str = Field(min_length=1)
    student_id: Optional[str] = None
    persistent_id: Optional[str] = None


class LeaveRoomPayload(EventPayload):
    session_id: str = Field(min_length=1)
    username: Optional[str] = None
    student_id: Optional[str] = None
