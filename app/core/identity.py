"""Persistent student identity resolution across reconnects."""

from __future__ import annotations

import logging
from typing import Optional

from app.constants.chat import Role
from app.core.presence import PresenceCache
from app.core.session_key import generate_student_id, normalize_username
from app.schemas.chat import StudentSnapshot
from app.services.chat_store import ChatStore

logger = logging.getLogger(__name__)


class IdentityResolver:
    """
    Resolve the persistent id a joining student should use.

    Order of precedence:
      1. an existing student of the session with the same username
         (case-insensitive), even if the client supplied some other id;
      2. a fresh id when the client supplied none;
      3. the supplied id, unless storage holds it for another session or for
         a different username; such an id is treated as forged or stale and
         replaced by a fresh one.

    Two people choosing the same display name in one session share an
    identity; that is the intended policy.
    """

    def __init__(self, store: ChatStore, presence: PresenceCache) -> None:
        self._store = store
        self._presence = presence

    async def resolve(
        self,
        session_id: str,
        username: str,
        role: Role,
        supplied_id: Optional[str] = None,
    ) -> Optional[str]:
        """Teachers get no persistent id. Raises StorageError on lookup failures."""
        if role is not Role.STUDENT:
            return None

        existing = await self._find_by_username(session_id, username)
        if existing is not None:
            logger.info(
                "Using existing ID for %s: %s", username, existing.persistent_id
            )
            return existing.persistent_id

        if not supplied_id:
            student_id = generate_student_id(username, session_id)
            logger.info("Generated new ID for %s: %s", username, student_id)
            return student_id

        stored = (await self._store.get_student(supplied_id)).unwrap()
        if stored is not None and (
            stored.session_id != session_id
            or not _same_username(stored.username, username)
        ):
            student_id = generate_student_id(username, session_id)
            logger.warning(
                "Supplied ID %s belongs to another student; regenerated %s for %s",
                supplied_id,
                student_id,
                username,
            )
            return student_id
        return supplied_id

    async def _find_by_username(
        self, session_id: str, username: str
    ) -> Optional[StudentSnapshot]:
        for student in await self._presence.load_students(session_id):
            if _same_username(student.username, username):
                return student
        # Students who left are no longer in the live roster
        return (await self._store.find_student_by_username(session_id, username)).unwrap()


def _same_username(a: str, b: str) -> bool:
    return normalize_username(a) == normalize_username(b)
