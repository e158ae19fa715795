from __future__ import annotations

from typing import List, Optional, assert_never

from app.constants.chat import (
    AI_SENDER,
    AI_SENDER_NAME,
    ANONYMOUS,
    SYSTEM_SENDER,
    SYSTEM_SENDER_NAME,
    TEACHER_LABEL,
    MessageType,
    Role,
    StudentStatus,
)
from app.core.events import ConnectionState, Delivery, OutboundEvent
from app.core.presence import PresenceCache
from app.core.session_key import (
    ensure_message_id,
    format_timestamp,
    generate_message_id,
    utc_timestamp,
)
from app.schemas.chat import ChatMessage, UserTyping
from app.schemas.events import SendMessagePayload
from app.services.chat_store import ChatStore

# Roles a connection may stamp on its own messages
_CLAIMABLE_ROLES = {
    Role.TEACHER: frozenset(Role),
    Role.STUDENT: frozenset({Role.STUDENT, Role.AI}),
}


class MessageRouter:
    """
    Role-based routing: decides which live connections receive a message and
    which stored history a joining party is shown.

    Students never see another student's private exchanges with the teacher
    or the AI assistant; teachers see everything in their session.
    """

    def __init__(self, presence: PresenceCache, store: ChatStore) -> None:
        self._presence = presence
        self._store = store

    def build_message(
        self, payload: SendMessagePayload, sender: ConnectionState
    ) -> ChatMessage:
        body = payload.message
        role = body.role or sender.role
        if role not in _CLAIMABLE_ROLES[sender.role]:
            role = sender.role
        if role is Role.AI:
            sender_id = AI_SENDER
            sender_name = body.sender or AI_SENDER_NAME
        else:
            sender_id = (
                sender.student_ref
                if sender.role is Role.STUDENT
                else sender.connection_id
            )
            sender_name = body.sender or sender.username or ANONYMOUS
        return ChatMessage(
            id=ensure_message_id(body.id),
            session_id=payload.session_id,
            sender=sender_id,
            sender_name=sender_name,
            text=body.text,
            timestamp=(
                format_timestamp(body.timestamp)
                if body.timestamp is not None
                else utc_timestamp()
            ),
            type=body.type or MessageType.MESSAGE,
            role=role,
            recipient=payload.recipient or None,
        )

    def notification(self, session_id: str, text: str, role: Role) -> ChatMessage:
        """System-sent notice (join, leave, disconnect, removal)."""
        return ChatMessage(
            id=generate_message_id(),
            session_id=session_id,
            sender=SYSTEM_SENDER,
            sender_name=SYSTEM_SENDER_NAME,
            text=text,
            timestamp=utc_timestamp(),
            type=MessageType.NOTIFICATION,
            role=role,
        )

    def route_message(
        self, message: ChatMessage, sender: ConnectionState
    ) -> List[Delivery]:
        """Recipients of a freshly persisted message, with per-recipient rewrites."""
        session_id = message.session_id
        teacher = self._presence.get_teacher(session_id)
        deliveries: List[Delivery] = []

        role = Role.AI if message.sender == AI_SENDER else message.role
        match role:
            case Role.AI:
                if teacher:
                    deliveries.append(_deliver(teacher, message))
                student_conn = self._student_connection(session_id, message.recipient)
                if student_conn:
                    deliveries.append(_deliver(student_conn, message))
            case Role.TEACHER:
                as_teacher = message.model_copy(update={"sender": TEACHER_LABEL})
                if message.recipient:
                    student_conn = self._student_connection(
                        session_id, message.recipient
                    )
                    if student_conn:
                        deliveries.append(_deliver(student_conn, as_teacher))
                else:
                    for conn in self._online_student_connections(session_id):
                        deliveries.append(_deliver(conn, as_teacher))
                deliveries.append(_deliver(sender.connection_id, message))
            case Role.STUDENT:
                if teacher:
                    deliveries.append(_deliver(teacher, message))
                echo = message.model_copy(
                    update={"sender": sender.username or ANONYMOUS}
                )
                deliveries.append(_deliver(sender.connection_id, echo))
            case Role.SYSTEM:
                # Client-stamped system messages are never relayed
                deliveries.append(_deliver(sender.connection_id, message))
            case _:
                assert_never(role)
        return deliveries

    def route_notification(
        self, message: ChatMessage, origin: ConnectionState, departing: bool = False
    ) -> List[Delivery]:
        """
        A departing teacher's notice goes to the whole session room. Any other
        notice goes to the teacher and, unless it is leaving, to the connection
        it concerns.
        """
        if departing and origin.role is Role.TEACHER:
            return [_deliver(message.session_id, message)]
        recipients = []
        teacher = self._presence.get_teacher(message.session_id)
        if teacher:
            recipients.append(teacher)
        if not departing and origin.connection_id not in recipients:
            recipients.append(origin.connection_id)
        return [_deliver(conn, message) for conn in recipients]

    def route_typing(
        self,
        sender: ConnectionState,
        username: Optional[str],
        is_typing: bool,
        recipient: Optional[str] = None,
    ) -> List[Delivery]:
        session_id = sender.session_id
        match sender.role:
            case Role.STUDENT:
                teacher = self._presence.get_teacher(session_id)
                if not teacher:
                    return []
                payload = UserTyping(
                    username=username,
                    is_typing=is_typing,
                    student_id=sender.student_ref,
                ).to_wire()
                return [Delivery(teacher, OutboundEvent.USER_TYPING, payload)]
            case Role.TEACHER:
                student_conn = self._student_connection(session_id, recipient)
                if not student_conn:
                    return []
                payload = UserTyping(username=username, is_typing=is_typing).to_wire()
                return [Delivery(student_conn, OutboundEvent.USER_TYPING, payload)]
            case Role.SYSTEM | Role.AI:
                return []
            case _:
                assert_never(sender.role)

    async def history_for(self, viewer: ConnectionState) -> List[ChatMessage]:
        """Chat history shown on join. Raises StorageError."""
        match viewer.role:
            case Role.TEACHER:
                return await self._presence.load_history(viewer.session_id)
            case Role.STUDENT:
                return (
                    await self._store.get_student_relevant_messages(
                        viewer.session_id, viewer.student_ref
                    )
                ).unwrap()
            case Role.SYSTEM | Role.AI:
                return []
            case _:
                assert_never(viewer.role)

    def roster_update(self, session_id: str) -> List[Delivery]:
        """Current roster pushed to the teacher, if one is connected."""
        teacher = self._presence.get_teacher(session_id)
        if not teacher:
            return []
        roster = [s.to_wire() for s in self._presence.students(session_id)]
        return [Delivery(teacher, OutboundEvent.STUDENT_LIST, roster)]

    def _student_connection(
        self, session_id: str, student_ref: Optional[str]
    ) -> Optional[str]:
        if not student_ref:
            return None
        student = self._presence.find_student(session_id, student_ref, student_ref)
        if student is None or student.status is StudentStatus.OFFLINE:
            return None
        return student.id

    def _online_student_connections(self, session_id: str) -> List[str]:
        return [
            s.id
            for s in self._presence.students(session_id)
            if s.id and s.status is not StudentStatus.OFFLINE
        ]


def _deliver(to: str, message: ChatMessage) -> Delivery:
    return Delivery(to, OutboundEvent.MESSAGE, message.to_wire())
