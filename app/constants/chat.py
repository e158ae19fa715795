"""Roles, statuses and literal senders used across the relay."""

from enum import StrEnum


class Role(StrEnum):
    """Role of a message sender. Matched exhaustively by the router."""

    TEACHER = "teacher"
    STUDENT = "student"
    SYSTEM = "system"
    AI = "ai"


JOIN_ROLES = (Role.TEACHER, Role.STUDENT)


class MessageType(StrEnum):
    MESSAGE = "message"
    NOTIFICATION = "notification"


class StudentStatus(StrEnum):
    ONLINE = "online"
    ACTIVE = "active"
    OFFLINE = "offline"


class SessionStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


SYSTEM_SENDER = "system"
SYSTEM_SENDER_NAME = "System"
AI_SENDER = "ai-assistant"
AI_SENDER_NAME = "AI Assistant"
# What students see in place of the teacher's connection id
TEACHER_LABEL = "teacher"
ANONYMOUS = "Anonymous"
