# backend/creatorlink/services/messaging/publisher.py
"""
High-level publishing functions for messaging events.

These functions handle:
- Building event payloads from committed service results
- Choosing the personal and conversation channels to fan out to
- Never failing the caller: delivery problems are logged and dropped

Recipients always come from the service result (the persisted
conversation's participants), never from client input.
"""

from datetime import datetime
import logging
from typing import Any, Dict, Iterable

from ...schemas.conversation import ConversationResponse
from ...schemas.message import MessageResponse
from ..message_service import MarkReadResult, MessageWithContext, ReadReceiptResult
from ..recruitment_service import StatusUpdateResult
from .channels import Channel, ConversationChannel, PersonalChannel
from .events import (
    EventType,
    presence_payload,
    read_receipt_payload,
    typing_payload,
    user_status_payload,
)
from .router import RoomRouter

logger = logging.getLogger(__name__)


def _safe_publish(
    router: RoomRouter,
    channel: Channel,
    event_type: EventType,
    payload: Dict[str, Any],
    **kwargs: Any,
) -> int:
    try:
        return router.publish(channel, event_type, payload, **kwargs)
    except Exception as exc:
        logger.error(
            f"[PUBLISHER] Failed to publish {event_type.value} to {channel.key}: {exc}",
            extra={"channel": channel.key, "event_type": event_type.value},
        )
        return 0


def publish_new_message(
    router: RoomRouter, context: MessageWithContext, message: MessageResponse
) -> int:
    """
    Fan out a persisted message.

    Goes to every other participant's personal channel and to the
    conversation channel, excluding the sender everywhere.
    """
    payload = {
        "conversation_id": context.conversation_id,
        "message": message.model_dump(mode="json"),
    }
    delivered = 0
    for recipient_id in context.recipient_ids:
        delivered += _safe_publish(
            router, PersonalChannel(recipient_id), EventType.NEW_MESSAGE, payload
        )
    delivered += _safe_publish(
        router,
        ConversationChannel(context.conversation_id),
        EventType.NEW_MESSAGE,
        payload,
        exclude_identity=context.sender_id,
    )
    logger.debug(
        "[PUBLISHER] new_message fan-out",
        extra={
            "conversation_id": context.conversation_id,
            "message_id": message.id,
            "delivered": delivered,
        },
    )
    return delivered


def publish_new_chat(
    router: RoomRouter, creator_id: str, conversation: ConversationResponse
) -> int:
    """Tell the creator a brand opened a conversation with them."""
    return _safe_publish(
        router,
        PersonalChannel(creator_id),
        EventType.NEW_CHAT,
        {"conversation": conversation.model_dump(mode="json")},
    )


def publish_read_receipt(
    router: RoomRouter, conversation_id: str, message_id: str, reader_id: str, read_at: datetime
) -> int:
    return _safe_publish(
        router,
        ConversationChannel(conversation_id),
        EventType.MESSAGE_READ_RECEIPT,
        read_receipt_payload(conversation_id, message_id, reader_id, read_at),
    )


def publish_receipt_result(router: RoomRouter, result: ReadReceiptResult) -> int:
    """Publish a single receipt, only when it was newly recorded."""
    if not result.newly_read:
        return 0
    return publish_read_receipt(
        router, result.conversation_id, result.message_id, result.reader_id, result.read_at
    )


def publish_mark_all_read(router: RoomRouter, result: MarkReadResult) -> int:
    """One receipt event per message that transitioned to read."""
    delivered = 0
    for message_id, read_at in result.receipts:
        delivered += publish_read_receipt(
            router, result.conversation_id, message_id, result.reader_id, read_at
        )
    return delivered


def publish_status_update(router: RoomRouter, result: StatusUpdateResult) -> int:
    if not result.changed:
        return 0
    conversation = result.conversation
    return _safe_publish(
        router,
        ConversationChannel(result.conversation_id),
        EventType.CHAT_STATUS_UPDATE,
        {
            "conversation_id": result.conversation_id,
            "status": conversation.connection_status.value,
            "recruitment_status": conversation.recruitment_status.value,
            "updated_by": result.updated_by,
        },
    )


def publish_presence(
    router: RoomRouter,
    conversation_id: str,
    identity_id: str,
    display_info: Dict[str, Any],
    *,
    online: bool,
) -> int:
    return _safe_publish(
        router,
        ConversationChannel(conversation_id),
        EventType.USER_ONLINE if online else EventType.USER_OFFLINE,
        presence_payload(identity_id, display_info, conversation_id),
        exclude_identity=identity_id,
    )


def publish_typing(
    router: RoomRouter, conversation_id: str, identity_id: str, *, typing: bool
) -> int:
    return _safe_publish(
        router,
        ConversationChannel(conversation_id),
        EventType.USER_TYPING if typing else EventType.USER_STOPPED_TYPING,
        typing_payload(identity_id, conversation_id),
        exclude_identity=identity_id,
    )


def publish_user_status(
    router: RoomRouter, channels: Iterable[Channel], identity_id: str, status: Any
) -> int:
    delivered = 0
    for channel in channels:
        if not isinstance(channel, ConversationChannel):
            continue
        delivered += _safe_publish(
            router,
            channel,
            EventType.USER_STATUS_UPDATE,
            user_status_payload(identity_id, status),
            exclude_identity=identity_id,
        )
    return delivered
