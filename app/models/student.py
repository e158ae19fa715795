"""Student model: one row per persistent student identity within a session."""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, String
from sqlalchemy.orm import relationship

from app.db import Base


class Student(Base):
    __tablename__ = "students"

    persistent_id = Column(String(512), primary_key=True)
    session_id = Column(
        String(16), ForeignKey("sessions.session_id"), nullable=False, index=True
    )
    username = Column(String(256), nullable=False)
    status = Column(String(16), nullable=False)  # 'online' | 'active' | 'offline'
    last_active = Column(String(64), nullable=True)
    socket_id = Column(String(128), nullable=True)  # stale once offline

    session = relationship("Session", back_populates="students")
