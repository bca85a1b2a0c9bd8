# backend/creatorlink/services/messaging/events.py
"""
Realtime event type definitions and builders.

All outbound events follow this structure:
{
    "type": str,           # Event type identifier
    "schema_version": int, # Schema version (currently 1)
    "timestamp": str,      # ISO 8601 timestamp
    "payload": dict        # Event-specific data
}

Inbound client frames use {"type": str, "payload": Any}.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class EventType(str, Enum):
    """Outbound realtime event types."""

    CONNECTED = "connected"
    HEARTBEAT = "heartbeat"
    ERROR = "error"
    USER_ONLINE = "user_online"
    USER_OFFLINE = "user_offline"
    USER_TYPING = "user_typing"
    USER_STOPPED_TYPING = "user_stopped_typing"
    MESSAGE_READ_RECEIPT = "message_read_receipt"
    NEW_CHAT = "new_chat"
    NEW_MESSAGE = "new_message"
    USER_STATUS_UPDATE = "user_status_update"
    CHAT_STATUS_UPDATE = "chat_status_update"


class InboundEventType(str, Enum):
    """Client-to-server frame types."""

    JOIN_CHAT = "join_chat"
    LEAVE_CHAT = "leave_chat"
    TYPING_START = "typing_start"
    TYPING_STOP = "typing_stop"
    MESSAGE_READ = "message_read"
    UPDATE_STATUS = "update_status"


# Current schema version - increment when payload structure changes
SCHEMA_VERSION = 1


def build_event(event_type: EventType, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build a properly structured event.

    Args:
        event_type: The type of event
        payload: Event-specific payload data

    Returns:
        Complete event dict ready for publishing
    """
    return {
        "type": event_type.value,
        "schema_version": SCHEMA_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "payload": payload,
    }


def build_connected_event(identity_id: str) -> Dict[str, Any]:
    return build_event(
        EventType.CONNECTED,
        {"identity_id": identity_id, "timestamp": datetime.now(timezone.utc).isoformat()},
    )


def build_heartbeat_event() -> Dict[str, Any]:
    return build_event(EventType.HEARTBEAT, {})


def build_error_event(code: str, message: str) -> Dict[str, Any]:
    return build_event(EventType.ERROR, {"code": code, "message": message})


def presence_payload(
    identity_id: str, display_info: Dict[str, Any], conversation_id: Optional[str] = None
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"identity_id": identity_id, "display_info": display_info}
    if conversation_id is not None:
        payload["conversation_id"] = conversation_id
    return payload


def typing_payload(identity_id: str, conversation_id: str) -> Dict[str, Any]:
    return {"identity_id": identity_id, "conversation_id": conversation_id}


def read_receipt_payload(
    conversation_id: str, message_id: str, reader_id: str, read_at: datetime
) -> Dict[str, Any]:
    return {
        "conversation_id": conversation_id,
        "message_id": message_id,
        "read_by": reader_id,
        "read_at": read_at.isoformat(),
    }


def user_status_payload(identity_id: str, status: Optional[str]) -> Dict[str, Any]:
    return {"identity_id": identity_id, "status": status}
