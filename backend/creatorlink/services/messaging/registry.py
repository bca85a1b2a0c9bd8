# backend/creatorlink/services/messaging/registry.py
"""
Connection Registry: which identities hold a live realtime connection.

Pure in-process state, owned by the application (created in the lifespan
hook, cleared at shutdown) rather than a module-level singleton. All
mutations go through one lock so the registry is safe to touch from
worker threads as well as the event loop.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import threading
from typing import Any, Dict, List, Optional

from ...monitoring.prometheus_metrics import prometheus_metrics
from .connection import ConnectionHandle

logger = logging.getLogger(__name__)


@dataclass
class PresenceEntry:
    identity_id: str
    handle: ConnectionHandle
    display_info: Dict[str, Any] = field(default_factory=dict)
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status_label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity_id": self.identity_id,
            "display_info": dict(self.display_info),
            "connected_at": self.connected_at.isoformat(),
            "status": self.status_label,
        }


class ConnectionRegistry:
    """
    At most one presence entry per identity.

    register() replaces any previous entry (reconnect or second tab wins);
    the previous socket is left open but stops being the current handle.
    unregister() is idempotent, and when given a handle it only removes
    the entry if that handle is still the current one, so a late
    disconnect of a replaced socket cannot evict its successor.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, PresenceEntry] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def register(
        self,
        identity_id: str,
        handle: ConnectionHandle,
        display_info: Optional[Dict[str, Any]] = None,
    ) -> Optional[PresenceEntry]:
        """Store the entry and return the one it replaced, if any."""
        entry = PresenceEntry(
            identity_id=identity_id,
            handle=handle,
            display_info=dict(display_info or {}),
        )
        with self._lock:
            previous = self._entries.get(identity_id)
            self._entries[identity_id] = entry
            count = len(self._entries)
        prometheus_metrics.set_realtime_connections(count)
        if previous is not None and previous.handle is not handle:
            logger.info(
                "[REALTIME] Connection replaced for identity",
                extra={"identity_id": identity_id},
            )
        return previous

    def unregister(self, identity_id: str, handle: Optional[ConnectionHandle] = None) -> bool:
        """Remove an identity's entry; returns whether anything was removed."""
        with self._lock:
            entry = self._entries.get(identity_id)
            if entry is None:
                return False
            if handle is not None and entry.handle is not handle:
                return False
            del self._entries[identity_id]
            count = len(self._entries)
        prometheus_metrics.set_realtime_connections(count)
        return True

    def lookup(self, identity_id: str) -> Optional[ConnectionHandle]:
        with self._lock:
            entry = self._entries.get(identity_id)
            return entry.handle if entry else None

    def get_entry(self, identity_id: str) -> Optional[PresenceEntry]:
        with self._lock:
            return self._entries.get(identity_id)

    def list_all(self) -> List[PresenceEntry]:
        with self._lock:
            return list(self._entries.values())

    def is_online(self, identity_id: str) -> bool:
        with self._lock:
            return identity_id in self._entries

    def is_current(self, handle: ConnectionHandle) -> bool:
        with self._lock:
            entry = self._entries.get(handle.identity_id)
            return entry is not None and entry.handle is handle

    def set_status_label(self, identity_id: str, status_label: Optional[str]) -> bool:
        with self._lock:
            entry = self._entries.get(identity_id)
            if entry is None:
                return False
            entry.status_label = status_label
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        prometheus_metrics.set_realtime_connections(0)
