from __future__ import annotations

from typing import Any, Protocol


class ChatTransport(Protocol):
    """
    Outbound side of the event channel.

    ``to`` is either a connection id or a session room name; sessions use
    their id as room name.
    """

    async def emit(self, event: str, payload: Any, to: str) -> None: ...
    async def enter_room(self, connection_id: str, room: str) -> None: ...
    async def leave_room(self, connection_id: str, room: str) -> None: ...
    async def disconnect(self, connection_id: str) -> None: ...
