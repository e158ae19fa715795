"""
Connection lifecycle: join, send, typing, select, kick, leave and disconnect.

Every inbound event goes through ``ConnectionLifecycleManager.dispatch``,
which validates the payload and runs exactly one handler. Handlers are fault
isolated: storage failures are logged and reported to the initiating
connection only, and nothing raised by a handler escapes ``dispatch``.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, Iterable, Optional

from app.channels.base import ChatTransport
from app.constants.chat import (
    ANONYMOUS,
    JOIN_ROLES,
    Role,
    SessionStatus,
    StudentStatus,
)
from app.core.events import (
    ConnectionPhase,
    ConnectionState,
    Delivery,
    InboundEvent,
    OutboundEvent,
    parse_payload,
)
from app.core.identity import IdentityResolver
from app.core.presence import PresenceCache
from app.core.routing import MessageRouter
from app.core.session_key import utc_timestamp
from app.exceptions import (
    AuthorizationError,
    ChatRelayError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.schemas.chat import (
    ChatMessage,
    ErrorPayload,
    KickedFromSession,
    StudentChatHistory,
    StudentKicked,
    StudentSnapshot,
)
from app.schemas.events import (
    EventPayload,
    JoinRoomPayload,
    KickStudentPayload,
    LeaveRoomPayload,
    SelectStudentPayload,
    SendMessagePayload,
    TypingPayload,
)
from app.services.chat_store import ChatStore

logger = logging.getLogger(__name__)

NOT_JOINED = "Join a session first"
KICK_NOTICE = "You have been removed from this session by the teacher"

Handler = Callable[[str, Optional[EventPayload]], Awaitable[None]]


class ConnectionLifecycleManager:
    def __init__(
        self,
        presence: PresenceCache,
        store: ChatStore,
        transport: ChatTransport,
        identity: Optional[IdentityResolver] = None,
        router: Optional[MessageRouter] = None,
    ) -> None:
        self.presence = presence
        self.store = store
        self.transport = transport
        self.identity = identity or IdentityResolver(store, presence)
        self.router = router or MessageRouter(presence, store)
        self._connections: Dict[str, ConnectionState] = {}
        self._handlers: Dict[InboundEvent, Handler] = {
            InboundEvent.JOIN_ROOM: self.join_room,
            InboundEvent.SEND_MESSAGE: self.send_message,
            InboundEvent.TYPING: self.typing,
            InboundEvent.SELECT_STUDENT: self.select_student,
            InboundEvent.KICK_STUDENT: self.kick_student,
            InboundEvent.LEAVE_ROOM: self.leave_room,
            InboundEvent.DISCONNECT: self.disconnect,
        }

    def connect(self, connection_id: str) -> ConnectionState:
        logger.info("New client connected: %s", connection_id)
        state = ConnectionState(connection_id)
        self._connections[connection_id] = state
        return state

    def connection(self, connection_id: str) -> Optional[ConnectionState]:
        return self._connections.get(connection_id)

    async def dispatch(self, connection_id: str, event: InboundEvent, *args) -> None:
        """Validate raw event arguments and run the matching handler."""
        try:
            payload = parse_payload(event, args)
        except ValidationError as e:
            logger.warning(
                "Rejected %s from %s: %s", event.value, connection_id, e.message
            )
            await self._emit_error(connection_id, e.message)
            return
        try:
            await self._handlers[event](connection_id, payload)
        except Exception:
            # Last line of fault isolation; handlers report their own failures
            logger.exception(
                "Unhandled error in %s handler for %s", event.value, connection_id
            )
            if event is not InboundEvent.DISCONNECT:
                await self._emit_error(connection_id, "Internal server error")

    # Handlers

    async def join_room(self, connection_id: str, payload: JoinRoomPayload) -> None:
        try:
            await self._join_room(connection_id, payload)
        except StorageError:
            logger.exception("Error joining room %s", payload.session_id)
            await self._emit_error(connection_id, "Failed to join room")
        except ChatRelayError as e:
            await self._emit_error(connection_id, e.message)

    async def send_message(
        self, connection_id: str, payload: SendMessagePayload
    ) -> None:
        try:
            state = self._require_joined(connection_id, payload.session_id)
            message = self.router.build_message(payload, state)
            saved = await self._persist(message)
            await self._send_all(self.router.route_message(saved, state))
            if state.role is Role.STUDENT:
                await self._touch_student(state)
        except StorageError:
            logger.exception("Error handling message in %s", payload.session_id)
            await self._emit_error(connection_id, "Failed to process message")
        except ChatRelayError as e:
            await self._emit_error(connection_id, e.message)

    async def typing(self, connection_id: str, payload: TypingPayload) -> None:
        try:
            state = self._require_joined(connection_id, payload.session_id)
        except ChatRelayError as e:
            await self._emit_error(connection_id, e.message)
            return
        await self._send_all(
            self.router.route_typing(
                state,
                payload.username or state.username,
                payload.is_typing,
                payload.recipient,
            )
        )

    async def select_student(
        self, connection_id: str, payload: SelectStudentPayload
    ) -> None:
        try:
            state = self._require_joined(connection_id, payload.session_id)
            if not state.is_teacher:
                raise AuthorizationError("Only teachers can select students")
            student = await self._find_student(
                payload.session_id, payload.student_id, payload.student_id
            )
            if student is None:
                raise NotFoundError("Student not found")
            logger.info(
                "Teacher selected student: %s with ID: %s",
                student.username,
                student.persistent_id,
            )
            chat = (
                await self.store.get_student_messages(
                    payload.session_id, student.persistent_id, student.username
                )
            ).unwrap()
            # Echo the id the teacher asked for, not the resolved one
            history = StudentChatHistory(student_id=payload.student_id, chat=chat)
            await self._send(
                Delivery(
                    connection_id,
                    OutboundEvent.STUDENT_CHAT_HISTORY,
                    history.to_wire(),
                )
            )
        except StorageError:
            logger.exception("Error selecting student %s", payload.student_id)
            await self._emit_error(connection_id, "Failed to select student")
        except ChatRelayError as e:
            await self._emit_error(connection_id, e.message)

    async def kick_student(
        self, connection_id: str, payload: KickStudentPayload
    ) -> None:
        try:
            state = self._require_joined(connection_id, payload.session_id)
            if not state.is_teacher:
                raise AuthorizationError("Only teachers can remove students")
            await self._kick_student(state, payload)
        except StorageError:
            logger.exception("Error kicking student %s", payload.student_id)
            await self._send(
                Delivery(
                    connection_id,
                    OutboundEvent.STUDENT_KICKED,
                    StudentKicked(
                        student_id=payload.student_id,
                        success=False,
                        message="Failed to kick student",
                    ).to_wire(),
                )
            )
        except ChatRelayError as e:
            await self._emit_error(connection_id, e.message)

    async def leave_room(self, connection_id: str, payload: LeaveRoomPayload) -> None:
        try:
            state = self._require_joined(connection_id, payload.session_id)
            username = payload.username or state.username
            await self._depart(state, f"{username} has left the room")
            await self.transport.leave_room(connection_id, payload.session_id)
            state.phase = ConnectionPhase.LEFT
            logger.info("%s left room: %s", username, payload.session_id)
        except StorageError:
            logger.exception("Error leaving room %s", payload.session_id)
            await self._emit_error(connection_id, "Failed to leave room")
        except ChatRelayError as e:
            await self._emit_error(connection_id, e.message)

    async def disconnect(self, connection_id: str, payload: None = None) -> None:
        state = self._connections.pop(connection_id, None)
        if state is not None and state.joined:
            try:
                await self._depart(
                    state, f"{state.username} has disconnected", keep_in_roster=True
                )
            except StorageError:
                # Nobody left to tell; the next hydration repairs the cache
                logger.exception("Error handling disconnect of %s", connection_id)
            state.phase = ConnectionPhase.DISCONNECTED
        logger.info("Client disconnected: %s", connection_id)

    # Flows

    async def _join_room(self, connection_id: str, payload: JoinRoomPayload) -> None:
        session_id = payload.session_id
        username = (payload.username or "").strip() or ANONYMOUS
        role = payload.role or Role.STUDENT
        if role not in JOIN_ROLES:
            raise ValidationError("Role must be teacher or student")

        session = (await self.store.ensure_session(session_id)).unwrap()
        if session.status is SessionStatus.INACTIVE:
            raise AuthorizationError("This session has ended")

        persistent_id = await self.identity.resolve(
            session_id, username, role, payload.persistent_student_id
        )

        state = self._connections.get(connection_id) or self.connect(connection_id)
        if state.joined:
            if state.session_id != session_id:
                await self.transport.leave_room(connection_id, state.session_id)
            # Switching session or role gives up the slot; a teacher retakes it below
            self.presence.clear_teacher(state.session_id, connection_id)
        state.session_id = session_id
        state.username = username
        state.role = role
        state.persistent_id = persistent_id
        state.phase = ConnectionPhase.JOINED
        await self.transport.enter_room(connection_id, session_id)

        await self.presence.load_history(session_id)
        await self.presence.load_students(session_id)

        if role is Role.TEACHER:
            self.presence.set_teacher(session_id, connection_id)
            await self._send(
                Delivery(
                    connection_id,
                    OutboundEvent.STUDENT_LIST,
                    [s.to_wire() for s in self.presence.students(session_id)],
                )
            )
        else:
            reconnecting = (
                self.presence.find_student(session_id, persistent_id) is not None
            )
            student = StudentSnapshot(
                id=connection_id,
                persistent_id=persistent_id,
                session_id=session_id,
                username=username,
                status=StudentStatus.ONLINE,
                last_active=utc_timestamp(),
            )
            self.presence.upsert_student(session_id, student)
            (await self.store.save_student(student)).unwrap()
            logger.info(
                "%s student %s joined room %s with ID %s",
                "Returning" if reconnecting else "New",
                username,
                session_id,
                persistent_id,
            )
            await self._send_all(self.router.roster_update(session_id))

        notice = await self._persist(
            self.router.notification(
                session_id, f"{username} has joined as {role}", role
            )
        )
        await self._send_all(self.router.route_notification(notice, state))

        history = await self.router.history_for(state)
        await self._send(
            Delivery(
                connection_id,
                OutboundEvent.CHAT_HISTORY,
                [m.to_wire() for m in history],
            )
        )

    async def _kick_student(
        self, teacher: ConnectionState, payload: KickStudentPayload
    ) -> None:
        session_id = payload.session_id
        target = await self._find_student(
            session_id,
            payload.persistent_id,
            None if payload.persistent_id else payload.student_id,
        )
        if target is None:
            await self._send(
                Delivery(
                    teacher.connection_id,
                    OutboundEvent.STUDENT_KICKED,
                    StudentKicked(
                        student_id=payload.student_id,
                        success=False,
                        message="Student not found",
                    ).to_wire(),
                )
            )
            return

        notice = await self._persist(
            self.router.notification(
                session_id,
                f"{target.username} has been removed from the session",
                Role.SYSTEM,
            )
        )

        if target.id:
            # Forget the connection first so its disconnect is not reported as a departure
            target_state = self._connections.pop(target.id, None)
            if target_state is not None:
                target_state.phase = ConnectionPhase.LEFT
            await self._send(
                Delivery(
                    target.id,
                    OutboundEvent.KICKED_FROM_SESSION,
                    KickedFromSession(message=KICK_NOTICE).to_wire(),
                )
            )
            await self._force_disconnect(target.id)

        (await self.store.remove_student(target.persistent_id, target.id)).unwrap()
        self.presence.remove_student(session_id, target.persistent_id, target.id)

        await self._send_all(
            [
                Delivery(
                    teacher.connection_id,
                    OutboundEvent.STUDENT_KICKED,
                    StudentKicked(
                        student_id=payload.student_id, success=True
                    ).to_wire(),
                ),
                Delivery(
                    teacher.connection_id,
                    OutboundEvent.STUDENT_LIST,
                    [s.to_wire() for s in self.presence.students(session_id)],
                ),
                Delivery(teacher.connection_id, OutboundEvent.MESSAGE, notice.to_wire()),
            ]
        )
        logger.info("Student %s kicked from session %s", target.username, session_id)

    async def _depart(
        self, state: ConnectionState, text: str, keep_in_roster: bool = False
    ) -> None:
        """
        Shared by leave and disconnect: free the teacher slot or persist the
        student as offline, then notify. A student who left is dropped from
        the live roster; a disconnected one stays listed as offline.
        """
        session_id = state.session_id
        if state.role is Role.TEACHER:
            self.presence.clear_teacher(session_id, state.connection_id)
        else:
            student = self.presence.find_student(
                session_id, state.persistent_id, state.connection_id
            )
            # Already rejoined on another connection: that one owns the entry
            if student is not None and student.id == state.connection_id:
                offline = student.model_copy(
                    update={
                        "status": StudentStatus.OFFLINE,
                        "last_active": utc_timestamp(),
                    }
                )
                (await self.store.save_student(offline)).unwrap()
                if keep_in_roster:
                    self.presence.upsert_student(session_id, offline)
                else:
                    self.presence.remove_student(
                        session_id, student.persistent_id, student.id
                    )
                await self._send_all(self.router.roster_update(session_id))

        notice = await self._persist(
            self.router.notification(session_id, text, state.role)
        )
        await self._send_all(
            self.router.route_notification(notice, state, departing=True)
        )

    async def _touch_student(self, state: ConnectionState) -> None:
        """Mark a student active after sending; failures only degrade the roster."""
        student = self.presence.find_student(
            state.session_id, state.persistent_id, state.connection_id
        )
        if student is None:
            return
        active = student.model_copy(
            update={"status": StudentStatus.ACTIVE, "last_active": utc_timestamp()}
        )
        self.presence.upsert_student(state.session_id, active)
        result = await self.store.save_student(active)
        if not result.ok:
            logger.warning(
                "Could not record activity for %s: %s",
                state.persistent_id,
                result.error,
            )
        await self._send_all(self.router.roster_update(state.session_id))

    # Helpers

    def _require_joined(self, connection_id: str, session_id: str) -> ConnectionState:
        state = self._connections.get(connection_id)
        if state is None or not state.joined:
            raise ValidationError(NOT_JOINED)
        if state.session_id != session_id:
            raise AuthorizationError("Not a member of this session")
        return state

    async def _find_student(
        self,
        session_id: str,
        persistent_id: Optional[str],
        connection_id: Optional[str],
    ) -> Optional[StudentSnapshot]:
        """Live roster first; students who already left are looked up in storage."""
        await self.presence.load_students(session_id)
        student = self.presence.find_student(session_id, persistent_id, connection_id)
        if student is not None or not persistent_id:
            return student
        stored = (await self.store.get_student(persistent_id)).unwrap()
        if stored is None or stored.session_id != session_id:
            return None
        return stored

    async def _persist(self, message: ChatMessage) -> ChatMessage:
        saved = (await self.store.save_message(message)).unwrap()
        self.presence.append_message(saved)
        return saved

    async def _send(self, delivery: Delivery) -> None:
        try:
            await self.transport.emit(delivery.event.value, delivery.payload, delivery.to)
        except Exception as e:
            # The connection may be gone already; deliveries are not retried
            logger.warning(
                "Dropped %s for %s: %s", delivery.event.value, delivery.to, e
            )

    async def _send_all(self, deliveries: Iterable[Delivery]) -> None:
        for delivery in deliveries:
            await self._send(delivery)

    async def _emit_error(self, connection_id: str, message: str) -> None:
        await self._send(
            Delivery(
                connection_id,
                OutboundEvent.ERROR,
                ErrorPayload(message=message).to_wire(),
            )
        )

    async def _force_disconnect(self, connection_id: str) -> None:
        try:
            await self.transport.disconnect(connection_id)
        except Exception as e:
            logger.warning("Could not disconnect %s: %s", connection_id, e)
