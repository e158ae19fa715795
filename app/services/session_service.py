"""Session CRUD: creation with unique 5-digit codes, status checks, deactivation."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session as DBSession

from app.constants.chat import SessionStatus
from app.core.session_key import generate_session_code
from app.exceptions import SessionCodeExhaustedError
from app.models.session import Session

logger = logging.getLogger(__name__)


class SessionService:
    def __init__(self, db: DBSession) -> None:
        self.db = db

    def get_session(self, session_id: str) -> Optional[Session]:
        return self.db.query(Session).filter(Session.session_id == session_id).first()

    def create_session(
        self, teacher_id: Optional[str] = None, max_attempts: int = 100
    ) -> Session:
        """
        Create an active session under a fresh code.

        Codes are unique across active and inactive sessions; a collision
        triggers regeneration, up to ``max_attempts`` tries.
        """
        for _ in range(max_attempts):
            code = generate_session_code()
            if self.get_session(code) is None:
                break
        else:
            raise SessionCodeExhaustedError(
                f"No free session code after {max_attempts} attempts"
            )
        session = Session(
            session_id=code,
            status=SessionStatus.ACTIVE.value,
            teacher_id=teacher_id,
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        logger.info(
            "Created new session: %s for teacher: %s", code, teacher_id or "anonymous"
        )
        return session

    def is_session_active(self, session_id: str) -> bool:
        session = self.get_session(session_id)
        return session is not None and session.is_active

    def ensure_session_exists(self, session_id: str) -> Tuple[Session, bool]:
        """
        Get a session by code, creating an active one if missing.
        Returns (session, created).
        """
        session = self.get_session(session_id)
        if session is not None:
            return session, False
        session = Session(session_id=session_id, status=SessionStatus.ACTIVE.value)
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        return session, True

    def deactivate_session(self, session_id: str) -> Optional[Session]:
        session = self.get_session(session_id)
        if session is None:
            return None
        session.status = SessionStatus.INACTIVE.value
        self.db.commit()
        self.db.refresh(session)
        return session

    def get_teacher_sessions(self, teacher_id: str) -> List[Session]:
        return (
            self.db.query(Session)
            .filter(Session.teacher_id == teacher_id)
            .order_by(Session.created_at.desc())
            .all()
        )

