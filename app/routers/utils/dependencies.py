from typing import Optional

from fastapi import HTTPException, Query, Request

from app.constants.chat import Role
from app.core.app_state import AppState


def get_chat_state(request: Request) -> AppState:
    """FastAPI dependency to get the chat services of the running app."""
    return request.app.state.chat


def require_teacher(role: Optional[str] = Query(None)) -> Role:
    """FastAPI dependency: the caller must claim the teacher role."""
    if role != Role.TEACHER:
        raise HTTPException(status_code=403, detail="Access denied")
    return Role.TEACHER
