"""Pydantic schemas for the session administration API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.constants.chat import SessionStatus


class SessionSchema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class SessionRead(SessionSchema):
    """Session as stored in DB."""

    session_id: str
    created_at: datetime
    status: SessionStatus
    teacher_id: Optional[str] = None


class SessionCreated(SessionSchema):
    session_id: str


class SessionStatusRead(SessionSchema):
    session_id: str
    active: bool


class SessionEnded(SessionSchema):
    success: bool
    message: str
