from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import sessionmaker

from app.channels.base import ChatTransport
from app.core.identity import IdentityResolver
from app.core.lifecycle import ConnectionLifecycleManager
from app.core.presence import PresenceCache
from app.core.routing import MessageRouter
from app.db import SessionLocal
from app.services.chat_store import ChatStore


class AppState:
    """Per-application chat services, shared by the event handlers and the HTTP API."""

    def __init__(
        self,
        transport: ChatTransport,
        session_factory: Optional[sessionmaker] = None,
    ) -> None:
        self.store = ChatStore(session_factory or SessionLocal)
        self.presence = PresenceCache(self.store)
        self.identity = IdentityResolver(self.store, self.presence)
        self.router = MessageRouter(self.presence, self.store)
        self.lifecycle = ConnectionLifecycleManager(
            self.presence,
            self.store,
            transport,
            identity=self.identity,
            router=self.router,
        )
