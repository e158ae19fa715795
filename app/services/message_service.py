"""Message persistence and history queries."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session as DBSession

from app.core.session_key import ensure_message_id
from app.core.visibility import student_visibility_clause, teacher_audit_clause
from app.models.message import Message
from app.schemas.chat import ChatMessage


class MessageService:
    def __init__(self, db: DBSession) -> None:
        self.db = db

    def save_message(self, data: ChatMessage) -> Message:
        msg = Message(
            id=ensure_message_id(data.id),
            session_id=data.session_id,
            sender=data.sender,
            sender_name=data.sender_name,
            text=data.text,
            timestamp=data.timestamp,
            type=data.type.value,
            role=data.role.value,
            recipient=data.recipient,
        )
        self.db.add(msg)
        self.db.commit()
        self.db.refresh(msg)
        return msg

    def get_session_messages(self, session_id: str) -> List[Message]:
        return (
            self.db.query(Message)
            .filter(Message.session_id == session_id)
            .order_by(Message.timestamp.asc())
            .all()
        )

    def get_student_relevant_messages(
        self, session_id: str, student_id: str
    ) -> List[Message]:
        """History a student is shown on join; private threads of others excluded."""
        return (
            self.db.query(Message)
            .filter(
                Message.session_id == session_id,
                student_visibility_clause(student_id),
            )
            .order_by(Message.timestamp.asc())
            .all()
        )

    def get_student_messages(
        self,
        session_id: str,
        student_id: str,
        username: Optional[str] = None,
    ) -> List[Message]:
        """Teacher's audit view of one student's thread."""
        return (
            self.db.query(Message)
            .filter(
                Message.session_id == session_id,
                teacher_audit_clause(student_id, username),
            )
            .order_by(Message.timestamp.asc())
            .all()
        )
