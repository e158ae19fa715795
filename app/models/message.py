"""Message model: one immutable row per chat message or notification."""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship

from app.db import Base


class Message(Base):
    """
    Messages are never updated or deleted. ``recipient`` holds a persistent
    student id; NULL means broadcast.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_session_id_timestamp", "session_id", "timestamp"),
    )

    id = Column(String(64), primary_key=True)
    session_id = Column(
        String(16), ForeignKey("sessions.session_id"), nullable=False
    )
    sender = Column(String(512), nullable=False)
    sender_name = Column(String(256), nullable=True)
    text = Column(Text, nullable=False, default="")
    timestamp = Column(String(64), nullable=False)  # ISO-8601, sorts in time order
    type = Column(String(16), nullable=False, default="message")
    role = Column(String(16), nullable=False, default="system")
    recipient = Column(String(512), nullable=True)

    session = relationship("Session", back_populates="messages")
