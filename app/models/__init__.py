from app.models.message import Message
from app.models.session import Session
from app.models.student import Student

__all__ = [
    "Message",
    "Session",
    "Student",
]
