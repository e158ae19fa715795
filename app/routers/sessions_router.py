"""Sessions API: generate, status, end, roster and per-student history."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.config import get_settings
from app.constants.chat import Role
from app.core.app_state import AppState
from app.db import get_db
from app.exceptions import SessionCodeExhaustedError
from app.routers.utils.dependencies import get_chat_state, require_teacher
from app.schemas.chat import ChatMessage, StudentSnapshot
from app.schemas.session import (
    SessionCreated,
    SessionEnded,
    SessionRead,
    SessionStatusRead,
)
from app.services.message_service import MessageService
from app.services.session_service import SessionService
from app.services.student_service import StudentService

logger = logging.getLogger(__name__)

sessions_router = APIRouter(prefix="/api", tags=["Session"])


@sessions_router.post("/generate-session", response_model=SessionCreated)
def generate_session(
    teacher_id: Optional[str] = Query(None, alias="teacherId"),
    db: Session = Depends(get_db),
) -> SessionCreated:
    """Create a new active session under a fresh 5-digit code."""
    svc = SessionService(db)
    try:
        session = svc.create_session(
            teacher_id=teacher_id,
            max_attempts=get_settings().session_code_max_attempts,
        )
    except SessionCodeExhaustedError as e:
        logger.error("Error generating session: %s", e.message)
        raise HTTPException(status_code=500, detail="Failed to generate session")
    return SessionCreated(session_id=session.session_id)


@sessions_router.get("/session/{session_id}/status", response_model=SessionStatusRead)
def get_session_status(
    session_id: str,
    db: Session = Depends(get_db),
) -> SessionStatusRead:
    """Whether a session exists and is still active."""
    active = SessionService(db).is_session_active(session_id)
    return SessionStatusRead(session_id=session_id, active=active)


@sessions_router.post("/session/{session_id}/end", response_model=SessionEnded)
def end_session(
    session_id: str,
    _role: Role = Depends(require_teacher),
    chat: AppState = Depends(get_chat_state),
    db: Session = Depends(get_db),
) -> SessionEnded:
    """Mark a session inactive and drop its live presence state."""
    session = SessionService(db).deactivate_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    chat.presence.clear_session(session_id)
    logger.info("Session %s ended", session_id)
    return SessionEnded(success=True, message="Session ended successfully")


@sessions_router.get(
    "/session/{session_id}/students", response_model=List[StudentSnapshot]
)
def list_session_students(
    session_id: str,
    _role: Role = Depends(require_teacher),
    db: Session = Depends(get_db),
) -> List[StudentSnapshot]:
    """Stored roster of a session, including offline students."""
    students = StudentService(db).get_session_students(session_id)
    return [StudentSnapshot.from_model(s) for s in students]


@sessions_router.get(
    "/session/{session_id}/student/{student_id}",
    response_model=List[ChatMessage],
)
def get_student_chat(
    session_id: str,
    student_id: str,
    username: Optional[str] = Query(None),
    _role: Role = Depends(require_teacher),
    db: Session = Depends(get_db),
) -> List[ChatMessage]:
    """Everything a teacher may audit for one student."""
    messages = MessageService(db).get_student_messages(session_id, student_id, username)
    return [ChatMessage.model_validate(m) for m in messages]


@sessions_router.get(
    "/teacher/{teacher_id}/sessions", response_model=List[SessionRead]
)
def list_teacher_sessions(
    teacher_id: str,
    db: Session = Depends(get_db),
) -> List[SessionRead]:
    """Sessions created by a teacher, newest first."""
    sessions = SessionService(db).get_teacher_sessions(teacher_id)
    return [SessionRead.model_validate(s) for s in sessions]
