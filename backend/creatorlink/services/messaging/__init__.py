# backend/creatorlink/services/messaging/__init__.py
"""
Realtime messaging package.

Architecture:
- ConnectionRegistry tracks the current live connection per identity
- RoomRouter fans events out to personal (user_<id>) and conversation
  (chat_<id>) channels, in-process and fire-and-forget
- RealtimeGateway runs the WebSocket protocol on top of both
- publisher functions turn committed service results into events
"""

from .channels import Channel, ConversationChannel, PersonalChannel
from .events import SCHEMA_VERSION, EventType, InboundEventType, build_event
from .gateway import RealtimeGateway
from .publisher import (
    publish_mark_all_read,
    publish_new_chat,
    publish_new_message,
    publish_presence,
    publish_read_receipt,
    publish_receipt_result,
    publish_status_update,
    publish_typing,
    publish_user_status,
)
from .registry import ConnectionRegistry, PresenceEntry
from .router import RoomRouter

__all__ = [
    # Channels
    "Channel",
    "ConversationChannel",
    "PersonalChannel",
    # Events
    "EventType",
    "InboundEventType",
    "SCHEMA_VERSION",
    "build_event",
    # State
    "ConnectionRegistry",
    "PresenceEntry",
    "RoomRouter",
    "RealtimeGateway",
    # Publishers
    "publish_new_message",
    "publish_new_chat",
    "publish_read_receipt",
    "publish_receipt_result",
    "publish_mark_all_read",
    "publish_status_update",
    "publish_presence",
    "publish_typing",
    "publish_user_status",
]
