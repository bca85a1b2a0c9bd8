# backend/creatorlink/services/messaging/gateway.py
"""
Realtime WebSocket gateway.

Lifecycle of one socket:
1. Authenticate (query ?token= or Authorization header) before touching
   the registry; failures close the socket with code 4401.
2. Register presence, subscribe to the personal channel, send `connected`.
3. Dispatch inbound {type, payload} frames until the client goes away.
4. On disconnect: drop subscriptions; if this socket is still the current
   one, announce departure on joined conversation channels and unregister.

Inbound failures are reported to the originating socket as an `error`
event and never close the connection.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional, TypeVar

from fastapi import WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session, sessionmaker

from ...core.auth import CredentialVerifier, extract_bearer_token
from ...core.config import Settings
from ...core.exceptions import DomainException, NotFoundException, ValidationException
from ...core.ulid_helper import is_valid_ulid
from ..conversation_service import ConversationService
from ..directory_service import DirectoryService, IdentityRecord
from ..message_service import MessageService, ReadReceiptResult
from .channels import ConversationChannel, PersonalChannel
from .connection import WebSocketConnection
from .events import InboundEventType, build_connected_event, build_error_event
from .publisher import publish_presence, publish_receipt_result, publish_typing, publish_user_status
from .registry import ConnectionRegistry
from .router import RoomRouter

logger = logging.getLogger(__name__)

WS_CLOSE_UNAUTHENTICATED = 4401
MAX_STATUS_LABEL_LENGTH = 100

T = TypeVar("T")


def display_info_for(identity: IdentityRecord) -> Dict[str, Any]:
    return {"display_label": identity.display_label, "role": identity.role.value}


class RealtimeGateway:
    """Owns the per-socket protocol; shared state lives in the registry and router."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        router: RoomRouter,
        session_factory: sessionmaker,
        settings: Settings,
        credential_verifier: Optional[CredentialVerifier] = None,
    ) -> None:
        self.registry = registry
        self.router = router
        self.session_factory = session_factory
        self.settings = settings
        self.credential_verifier = credential_verifier

    def _call_in_session(self, fn: Callable[[Session], T]) -> T:
        db = self.session_factory()
        try:
            result = fn(db)
            db.commit()
            return result
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def _run(self, fn: Callable[[Session], T]) -> T:
        return await asyncio.to_thread(self._call_in_session, fn)

    async def authenticate(self, websocket: WebSocket) -> Optional[IdentityRecord]:
        token = websocket.query_params.get("token") or extract_bearer_token(
            websocket.headers.get("authorization")
        )
        try:
            return await self._run(
                lambda db: DirectoryService(db).authenticate(self.credential_verifier, token)
            )
        except DomainException as exc:
            logger.info(f"[GATEWAY] Rejecting socket: {exc.code}")
            return None

    async def handle(self, websocket: WebSocket) -> None:
        identity = await self.authenticate(websocket)
        if identity is None:
            await websocket.close(code=WS_CLOSE_UNAUTHENTICATED)
            return

        await websocket.accept()
        connection = WebSocketConnection(
            websocket,
            identity.id,
            queue_size=self.settings.realtime_outbound_queue_size,
            heartbeat_interval=self.settings.realtime_heartbeat_interval,
        )
        connection.start()
        display_info = display_info_for(identity)
        self.registry.register(identity.id, connection, display_info)
        self.router.subscribe(connection, PersonalChannel(identity.id))
        connection.deliver(build_connected_event(identity.id))
        logger.info(f"[GATEWAY] {identity.id} connected", extra={"identity_id": identity.id})

        try:
            while True:
                raw = await websocket.receive_text()
                await self._dispatch(connection, identity, display_info, raw)
        except WebSocketDisconnect:
            logger.info(f"[GATEWAY] {identity.id} disconnected", extra={"identity_id": identity.id})
        finally:
            await self._cleanup(connection, identity, display_info)

    async def _cleanup(
        self, connection: WebSocketConnection, identity: IdentityRecord, display_info: Dict[str, Any]
    ) -> None:
        channels = self.router.unsubscribe_all(connection)
        # A replaced socket leaves silently; the identity is still online elsewhere.
        if self.registry.is_current(connection):
            for channel in channels:
                if isinstance(channel, ConversationChannel):
                    publish_presence(
                        self.router, channel.conversation_id, identity.id, display_info, online=False
                    )
        self.registry.unregister(identity.id, connection)
        await connection.close()

    async def _dispatch(
        self,
        connection: WebSocketConnection,
        identity: IdentityRecord,
        display_info: Dict[str, Any],
        raw: str,
    ) -> None:
        try:
            frame = json.loads(raw)
            if not isinstance(frame, dict):
                raise ValidationException("Frames must be JSON objects", code="INVALID_FRAME")
            try:
                event_type = InboundEventType(frame.get("type"))
            except ValueError:
                raise ValidationException(
                    f"Unknown event type: {frame.get('type')}", code="UNKNOWN_EVENT"
                )
            payload = frame.get("payload")

            if event_type == InboundEventType.JOIN_CHAT:
                await self._join_chat(connection, identity, display_info, payload)
            elif event_type == InboundEventType.LEAVE_CHAT:
                self._leave_chat(connection, identity, display_info, payload)
            elif event_type in (InboundEventType.TYPING_START, InboundEventType.TYPING_STOP):
                self._typing(
                    connection, identity, payload, event_type == InboundEventType.TYPING_START
                )
            elif event_type == InboundEventType.MESSAGE_READ:
                await self._message_read(identity, payload)
            elif event_type == InboundEventType.UPDATE_STATUS:
                self._update_status(connection, identity, payload)
        except json.JSONDecodeError:
            connection.deliver(build_error_event("INVALID_FRAME", "Frames must be valid JSON"))
        except DomainException as exc:
            logger.debug(
                f"[GATEWAY] Inbound frame rejected: {exc.code}",
                extra={"identity_id": identity.id},
            )
            connection.deliver(build_error_event(exc.code, exc.message))

    @staticmethod
    def _conversation_id(payload: Any) -> str:
        value = payload.get("conversation_id") if isinstance(payload, dict) else payload
        if not isinstance(value, str) or not is_valid_ulid(value):
            raise ValidationException("A valid conversation_id is required", code="INVALID_PAYLOAD")
        return value

    def _require_joined(self, connection: WebSocketConnection, conversation_id: str) -> ConversationChannel:
        channel = ConversationChannel(conversation_id)
        if not self.router.is_subscribed(connection, channel):
            raise NotFoundException("Join the conversation first", code="NOT_JOINED")
        return channel

    async def _join_chat(
        self,
        connection: WebSocketConnection,
        identity: IdentityRecord,
        display_info: Dict[str, Any],
        payload: Any,
    ) -> None:
        conversation_id = self._conversation_id(payload)
        # Raises NotFound / Forbidden for unknown conversations and outsiders.
        await self._run(
            lambda db: ConversationService(db).get_conversation(identity.id, conversation_id)
        )
        if self.router.subscribe(connection, ConversationChannel(conversation_id)):
            publish_presence(self.router, conversation_id, identity.id, display_info, online=True)

    def _leave_chat(
        self,
        connection: WebSocketConnection,
        identity: IdentityRecord,
        display_info: Dict[str, Any],
        payload: Any,
    ) -> None:
        conversation_id = self._conversation_id(payload)
        if self.router.unsubscribe(connection, ConversationChannel(conversation_id)):
            publish_presence(self.router, conversation_id, identity.id, display_info, online=False)

    def _typing(
        self,
        connection: WebSocketConnection,
        identity: IdentityRecord,
        payload: Any,
        typing: bool,
    ) -> None:
        conversation_id = self._conversation_id(payload)
        self._require_joined(connection, conversation_id)
        publish_typing(self.router, conversation_id, identity.id, typing=typing)

    async def _message_read(self, identity: IdentityRecord, payload: Any) -> None:
        conversation_id = self._conversation_id(payload)
        message_id = payload.get("message_id") if isinstance(payload, dict) else None
        if not isinstance(message_id, str) or not message_id:
            raise ValidationException("message_id is required", code="INVALID_PAYLOAD")
        result: ReadReceiptResult = await self._run(
            lambda db: MessageService(db).mark_read(identity.id, conversation_id, message_id)
        )
        publish_receipt_result(self.router, result)

    def _update_status(
        self, connection: WebSocketConnection, identity: IdentityRecord, payload: Any
    ) -> None:
        label = payload.get("status") if isinstance(payload, dict) else payload
        if label is not None and not isinstance(label, str):
            raise ValidationException("status must be a string", code="INVALID_PAYLOAD")
        if label is not None:
            label = label.strip()[:MAX_STATUS_LABEL_LENGTH] or None
        self.registry.set_status_label(identity.id, label)
        publish_user_status(self.router, self.router.channels_for(connection), identity.id, label)
