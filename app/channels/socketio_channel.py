"""
Socket.IO binding for the chat relay.

One ``AsyncServer`` serves every classroom session; each session id doubles as
the Socket.IO room name. Inbound events are handed to the lifecycle manager
unchanged, so clients may keep sending positional arguments.
"""

from __future__ import annotations

import logging
from typing import Any

import socketio

from app.config import Settings
from app.core.events import InboundEvent
from app.core.lifecycle import ConnectionLifecycleManager

logger = logging.getLogger(__name__)


class SocketIOTransport:
    """``ChatTransport`` on top of a python-socketio server."""

    def __init__(self, sio: socketio.AsyncServer) -> None:
        self.sio = sio

    async def emit(self, event: str, payload: Any, to: str) -> None:
        await self.sio.emit(event, payload, to=to)

    async def enter_room(self, connection_id: str, room: str) -> None:
        await self.sio.enter_room(connection_id, room)

    async def leave_room(self, connection_id: str, room: str) -> None:
        await self.sio.leave_room(connection_id, room)

    async def disconnect(self, connection_id: str) -> None:
        await self.sio.disconnect(connection_id)


def create_socketio_server(settings: Settings) -> socketio.AsyncServer:
    origins = settings.cors_origins
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins="*" if origins == ["*"] else origins,
        logger=False,
        engineio_logger=False,
    )


def register_chat_events(
    sio: socketio.AsyncServer, manager: ConnectionLifecycleManager
) -> None:
    async def connect(sid: str, environ: dict[str, Any], auth: Any = None):
        manager.connect(sid)

    sio.on("connect", connect)

    for event in InboundEvent:
        sio.on(event.value, _event_handler(manager, event))


def _event_handler(manager: ConnectionLifecycleManager, event: InboundEvent):
    async def handler(sid: str, *args: Any) -> None:
        if event is InboundEvent.DISCONNECT:
            # Newer servers pass the disconnect reason; it carries no payload
            args = ()
        await manager.dispatch(sid, event, *args)

    handler.__name__ = f"on_{event.value}"
    return handler
