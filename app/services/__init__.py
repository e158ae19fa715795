from app.services.chat_store import ChatStore, StoreResult
from app.services.message_service import MessageService
from app.services.session_service import SessionService
from app.services.student_service import StudentService

__all__ = [
    "ChatStore",
    "MessageService",
    "SessionService",
    "StoreResult",
    "StudentService",
]
