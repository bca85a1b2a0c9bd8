# backend/creatorlink/services/messaging/router.py
"""
Room Router: channel subscriptions and best-effort fan-out.

publish() builds one event envelope and hands it to every current
subscriber without awaiting anything. Nobody subscribed means the event
is dropped; persisted state stays the source of truth and clients resync
by pulling.
"""

from collections import defaultdict
import logging
import threading
from typing import Any, Dict, List, Optional

from ...monitoring.prometheus_metrics import prometheus_metrics
from .channels import Channel
from .connection import ConnectionHandle
from .events import EventType, build_event
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class RoomRouter:
    """Maps channels to subscribed connection handles."""

    def __init__(self, registry: Optional[ConnectionRegistry] = None) -> None:
        self.registry = registry
        self._subscribers: Dict[str, Dict[str, ConnectionHandle]] = defaultdict(dict)
        self._channels_by_connection: Dict[str, Dict[str, Channel]] = defaultdict(dict)
        self._lock = threading.RLock()

    def subscribe(self, handle: ConnectionHandle, channel: Channel) -> bool:
        """Subscribe a handle; returns False if it was already subscribed."""
        with self._lock:
            bucket = self._subscribers[channel.key]
            if handle.connection_id in bucket:
                return False
            bucket[handle.connection_id] = handle
            self._channels_by_connection[handle.connection_id][channel.key] = channel
        logger.debug(
            f"[REALTIME] {handle.identity_id} subscribed to {channel.key}",
            extra={"identity_id": handle.identity_id, "connection_id": handle.connection_id},
        )
        return True

    def unsubscribe(self, handle: ConnectionHandle, channel: Channel) -> bool:
        with self._lock:
            bucket = self._subscribers.get(channel.key)
            if not bucket or handle.connection_id not in bucket:
                return False
            del bucket[handle.connection_id]
            if not bucket:
                del self._subscribers[channel.key]
            joined = self._channels_by_connection.get(handle.connection_id)
            if joined is not None:
                joined.pop(channel.key, None)
                if not joined:
                    del self._channels_by_connection[handle.connection_id]
        return True

    def unsubscribe_all(self, handle: ConnectionHandle) -> List[Channel]:
        """Drop every subscription of a handle and return the channels it left."""
        with self._lock:
            joined = self._channels_by_connection.pop(handle.connection_id, {})
            for key in joined:
                bucket = self._subscribers.get(key)
                if bucket is None:
                    continue
                bucket.pop(handle.connection_id, None)
                if not bucket:
                    del self._subscribers[key]
        return list(joined.values())

    def channels_for(self, handle: ConnectionHandle) -> List[Channel]:
        with self._lock:
            return list(self._channels_by_connection.get(handle.connection_id, {}).values())

    def is_subscribed(self, handle: ConnectionHandle, channel: Channel) -> bool:
        with self._lock:
            return handle.connection_id in self._subscribers.get(channel.key, {})

    def subscriber_count(self, channel: Channel) -> int:
        with self._lock:
            return len(self._subscribers.get(channel.key, {}))

    def publish(
        self,
        channel: Channel,
        event_type: EventType,
        payload: Dict[str, Any],
        *,
        exclude_identity: Optional[str] = None,
    ) -> int:
        """
        Deliver an event to every current subscriber of a channel.

        Handles that a newer connection has replaced in the registry are
        skipped. Returns the number of handles that accepted the event.
        """
        with self._lock:
            targets = list(self._subscribers.get(channel.key, {}).values())

        if not targets:
            prometheus_metrics.record_realtime_event(event_type.value, channel.kind, "no_subscribers")
            return 0

        event = build_event(event_type, payload)
        delivered = 0
        for handle in targets:
            if exclude_identity is not None and handle.identity_id == exclude_identity:
                continue
            if self.registry is not None and not self.registry.is_current(handle):
                continue
            try:
                accepted = handle.deliver(event)
            except Exception as exc:
                accepted = False
                logger.warning(
                    "[REALTIME] Delivery failed",
                    extra={
                        "channel": channel.key,
                        "identity_id": handle.identity_id,
                        "error": str(exc),
                    },
                )
            prometheus_metrics.record_realtime_event(
                event_type.value, channel.kind, "delivered" if accepted else "dropped"
            )
            if accepted:
                delivered += 1
        return delivered

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()
            self._channels_by_connection.clear()
