"""
Async storage adapter used by the realtime handlers.

Each call opens its own DB session, runs the synchronous service code in the
threadpool and returns a ``StoreResult`` instead of raising, so callers decide
whether a failure aborts the handler or is tolerated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, TypeVar

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession, sessionmaker

from app.db import SessionLocal, db_session
from app.exceptions import StorageError
from app.schemas.chat import ChatMessage, StudentSnapshot
from app.schemas.session import SessionRead
from app.services.message_service import MessageService
from app.services.session_service import SessionService
from app.services.student_service import StudentService

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[StorageError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    @classmethod
    def success(cls, value: T) -> "StoreResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: StorageError) -> "StoreResult[T]":
        return cls(error=error)


class ChatStore:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    async def _run(self, action: str, fn: Callable[[DBSession], T]) -> StoreResult[T]:
        try:
            value = await run_in_threadpool(self._call, fn)
        except SQLAlchemyError as e:
            logger.exception("Storage error while trying to %s: %s", action, e)
            return StoreResult.failure(StorageError(f"Failed to {action}"))
        return StoreResult.success(value)

    def _call(self, fn: Callable[[DBSession], T]) -> T:
        with db_session(self._session_factory) as db:
            return fn(db)

    # Sessions

    async def ensure_session(self, session_id: str) -> StoreResult[SessionRead]:
        def op(db: DBSession) -> SessionRead:
            session, _ = SessionService(db).ensure_session_exists(session_id)
            return SessionRead.model_validate(session)

        return await self._run("ensure session", op)

    # Students

    async def save_student(
        self, student: StudentSnapshot
    ) -> StoreResult[StudentSnapshot]:
        return await self._run(
            "save student",
            lambda db: StudentSnapshot.from_model(StudentService(db).save_student(student)),
        )

    async def get_session_students(
        self, session_id: str
    ) -> StoreResult[List[StudentSnapshot]]:
        return await self._run(
            "load students",
            lambda db: [
                StudentSnapshot.from_model(s)
                for s in StudentService(db).get_session_students(session_id)
            ],
        )

    async def get_student(
        self, persistent_id: str
    ) -> StoreResult[Optional[StudentSnapshot]]:
        def op(db: DBSession) -> Optional[StudentSnapshot]:
            student = StudentService(db).get_student(persistent_id)
            return StudentSnapshot.from_model(student) if student else None

        return await self._run("find student", op)

    async def find_student_by_username(
        self, session_id: str, username: str
    ) -> StoreResult[Optional[StudentSnapshot]]:
        def op(db: DBSession) -> Optional[StudentSnapshot]:
            student = StudentService(db).find_student_by_username(session_id, username)
            return StudentSnapshot.from_model(student) if student else None

        return await self._run("find student", op)

    async def remove_student(
        self, persistent_id: Optional[str], socket_id: Optional[str] = None
    ) -> StoreResult[bool]:
        return await self._run(
            "remove student",
            lambda db: StudentService(db).remove_student(persistent_id, socket_id),
        )

    # Messages

    async def save_message(self, message: ChatMessage) -> StoreResult[ChatMessage]:
        return await self._run(
            "save message",
            lambda db: ChatMessage.model_validate(MessageService(db).save_message(message)),
        )

    async def get_session_messages(
        self, session_id: str
    ) -> StoreResult[List[ChatMessage]]:
        return await self._run(
            "load messages",
            lambda db: [
                ChatMessage.model_validate(m)
                for m in MessageService(db).get_session_messages(session_id)
            ],
        )

    async def get_student_relevant_messages(
        self, session_id: str, student_id: str
    ) -> StoreResult[List[ChatMessage]]:
        return await self._run(
            "load student history",
            lambda db: [
                ChatMessage.model_validate(m)
                for m in MessageService(db).get_student_relevant_messages(
                    session_id, student_id
                )
            ],
        )

    async def get_student_messages(
        self, session_id: str, student_id: str, username: Optional[str] = None
    ) -> StoreResult[List[ChatMessage]]:
        return await self._run(
            "load student messages",
            lambda db: [
                ChatMessage.model_validate(m)
                for m in MessageService(db).get_student_messages(
                    session_id, student_id, username
                )
            ],
        )
