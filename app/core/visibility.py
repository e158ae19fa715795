"""
Role-scoped visibility rules for stored messages, as SQL filter clauses.

Students only ever see broadcast system notices, their own messages, teacher
messages addressed to them or to everyone, and AI replies addressed to them.
Teachers auditing one student get a broader view.
"""

from __future__ import annotations

from sqlalchemy import and_, or_
from sqlalchemy.sql.elements import ColumnElement

from app.constants.chat import AI_SENDER, MessageType, Role
from app.models.message import Message


def student_visibility_clause(student_id: str) -> ColumnElement[bool]:
    """Messages a student may see in their own chat history."""
    return or_(
        and_(Message.role == Role.SYSTEM.value, Message.recipient.is_(None)),
        Message.sender == student_id,
        and_(
            Message.role == Role.TEACHER.value,
            or_(Message.recipient == student_id, Message.recipient.is_(None)),
        ),
        and_(Message.sender == AI_SENDER, Message.recipient == student_id),
    )


def teacher_audit_clause(
    student_id: str, username: str | None = None
) -> ColumnElement[bool]:
    """Everything a teacher sees when opening one student's thread (OR semantics)."""
    conditions = [
        Message.type == MessageType.NOTIFICATION.value,
        Message.sender == student_id,
        Message.recipient == student_id,
        and_(Message.sender == AI_SENDER, Message.recipient == student_id),
    ]
    if username:
        conditions.append(Message.sender_name == username)
    return or_(*conditions)
