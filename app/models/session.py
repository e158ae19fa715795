"""Session model: one row per classroom chat room, identified by a 5-digit code."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from app.constants.chat import SessionStatus
from app.db import Base


class Session(Base):
    """Classroom session. Deactivated when it ends, never deleted."""

    __tablename__ = "sessions"

    session_id = Column(String(16), primary_key=True)
    created_at = Column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )
    status = Column(
        String(16), nullable=False, default=SessionStatus.ACTIVE.value, index=True
    )
    teacher_id = Column(String(256), nullable=True, index=True)

    students = relationship("Student", back_populates="session")
    messages = relationship(
        "Message",
        back_populates="session",
        order_by="Message.timestamp",
    )

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE.value
