"""
In-memory presence cache: per-session roster, message history mirror and the
current teacher connection.

The cache is a best-effort mirror of storage. Entries are hydrated lazily
whenever they are absent or empty, and a hydration never replaces an entry
that was populated while the storage call was in flight. Failed hydrations
are not cached; the next access retries.
"""

from __future__ import annotations

import bisect
import logging
from typing import Dict, List, Optional

from app.schemas.chat import ChatMessage, StudentSnapshot
from app.services.chat_store import ChatStore

logger = logging.getLogger(__name__)


class PresenceCache:
    def __init__(self, store: ChatStore) -> None:
        self._store = store
        self._students: Dict[str, List[StudentSnapshot]] = {}
        self._history: Dict[str, List[ChatMessage]] = {}
        self._teachers: Dict[str, str] = {}

    async def load_students(self, session_id: str) -> List[StudentSnapshot]:
        """Roster for a session, hydrated from storage on a miss. Raises StorageError."""
        if self._students.get(session_id):
            return list(self._students[session_id])
        students = (await self._store.get_session_students(session_id)).unwrap()
        if not self._students.get(session_id):
            self._students[session_id] = list(students)
            logger.debug(
                "Hydrated %d students for session %s", len(students), session_id
            )
        return list(self._students[session_id])

    async def load_history(self, session_id: str) -> List[ChatMessage]:
        """Message history for a session, hydrated from storage on a miss. Raises StorageError."""
        if self._history.get(session_id):
            return list(self._history[session_id])
        messages = (await self._store.get_session_messages(session_id)).unwrap()
        if not self._history.get(session_id):
            self._history[session_id] = list(messages)
            logger.debug(
                "Hydrated %d messages for session %s", len(messages), session_id
            )
        return list(self._history[session_id])

    def students(self, session_id: str) -> List[StudentSnapshot]:
        return list(self._students.get(session_id, []))

    def upsert_student(self, session_id: str, student: StudentSnapshot) -> None:
        """Last write wins, matching on persistent id or connection id."""
        roster = self._students.setdefault(session_id, [])
        for index, existing in enumerate(roster):
            if existing.persistent_id == student.persistent_id or (
                student.id is not None and existing.id == student.id
            ):
                roster[index] = student
                return
        roster.append(student)

    def remove_student(
        self,
        session_id: str,
        persistent_id: Optional[str] = None,
        connection_id: Optional[str] = None,
    ) -> None:
        roster = self._students.get(session_id)
        if not roster:
            return
        self._students[session_id] = [
            s
            for s in roster
            if not _matches(s, persistent_id, connection_id)
        ]

    def find_student(
        self,
        session_id: str,
        persistent_id: Optional[str] = None,
        connection_id: Optional[str] = None,
    ) -> Optional[StudentSnapshot]:
        for student in self._students.get(session_id, []):
            if _matches(student, persistent_id, connection_id):
                return student
        return None

    def append_message(self, message: ChatMessage) -> None:
        """Insert in timestamp order, after any message with the same timestamp."""
        # An unhydrated session picks the message up from storage later
        history = self._history.get(message.session_id)
        if history is not None:
            bisect.insort(history, message, key=lambda m: m.timestamp)

    def get_teacher(self, session_id: str) -> Optional[str]:
        return self._teachers.get(session_id)

    def set_teacher(self, session_id: str, connection_id: str) -> None:
        self._teachers[session_id] = connection_id

    def clear_teacher(self, session_id: str, connection_id: Optional[str] = None) -> None:
        """Free the teacher slot; with ``connection_id``, only if that connection holds it."""
        if connection_id is not None and self._teachers.get(session_id) != connection_id:
            return
        self._teachers.pop(session_id, None)

    def clear_session(self, session_id: str) -> None:
        self._students.pop(session_id, None)
        self._history.pop(session_id, None)
        self._teachers.pop(session_id, None)


def _matches(
    student: StudentSnapshot,
    persistent_id: Optional[str],
    connection_id: Optional[str],
) -> bool:
    return bool(
        (persistent_id and student.persistent_id == persistent_id)
        or (connection_id and student.id == connection_id)
    )
