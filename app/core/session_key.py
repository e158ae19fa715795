"""Identifier derivation for sessions, students and messages."""

from __future__ import annotations

import random
import time
import uuid
from datetime import datetime, timezone

SESSION_CODE_MIN = 10000
SESSION_CODE_MAX = 99999


def generate_session_code() -> str:
    """Random 5-digit session code. Uniqueness is checked by the caller."""
    return str(random.randint(SESSION_CODE_MIN, SESSION_CODE_MAX))


def normalize_username(username: str) -> str:
    return username.strip().lower()


def generate_student_id(username: str, session_id: str) -> str:
    """
    Build a persistent student id: {session_id}_{normalized username}_{8 hex}.

    The random suffix keeps two distinct students apart even when their
    normalized usernames collide across lookups that did not match by name.
    """
    return f"{session_id}_{normalize_username(username)}_{uuid.uuid4().hex[:8]}"


def generate_message_id() -> str:
    """Time-based message id with a random suffix: {epoch millis}_{8 hex}."""
    return f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def ensure_message_id(message_id: str | None) -> str:
    """Keep a client-supplied id only when it already has the {prefix}_{suffix} shape."""
    if not message_id or "_" not in message_id:
        return generate_message_id()
    return message_id


def format_timestamp(moment: datetime) -> str:
    """
    Render as ISO-8601 UTC with microseconds and a Z suffix.

    Stored timestamps all share this shape, so they sort lexicographically in
    time order. Naive datetimes are taken to be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (
        moment.astimezone(timezone.utc)
        .isoformat(timespec="microseconds")
        .replace("+00:00", "Z")
    )


def utc_timestamp() -> str:
    return format_timestamp(datetime.now(timezone.utc))
