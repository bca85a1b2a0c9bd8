# backend/creatorlink/core/conversation_lock.py
"""
Per-conversation mutex for the message pipeline.

Entries are created on first use and dropped when the last holder leaves.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
from typing import Dict, Iterator

from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


class _LockEntry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


_LOCKS: Dict[str, _LockEntry] = {}
_LOCKS_GUARD = threading.Lock()


def _lock_key(conversation_id: str) -> str:
    return f"conversation:{conversation_id}:mutex"


def _checkout(key: str) -> _LockEntry:
    with _LOCKS_GUARD:
        entry = _LOCKS.get(key)
        if entry is None:
            entry = _LockEntry()
            _LOCKS[key] = entry
        entry.holders += 1
        return entry


def _checkin(key: str, entry: _LockEntry) -> None:
    with _LOCKS_GUARD:
        entry.holders -= 1
        if entry.holders <= 0 and _LOCKS.get(key) is entry:
            del _LOCKS[key]


@contextmanager
def conversation_lock(conversation_id: str) -> Iterator[None]:
    """
    Serialize mutations of a single conversation inside this process.

    Paired with a row lock on the conversation inside the transaction, so
    the message insert, sequence assignment and last-message pointer update
    happen as one unit even when the host runs services in worker threads.
    """
    key = _lock_key(conversation_id)
    entry = _checkout(key)
    contended = not entry.lock.acquire(blocking=False)
    if contended:
        prometheus_metrics.record_conversation_lock("contended")
        logger.debug("conversation_lock_wait", extra={"conversation_id": conversation_id})
        entry.lock.acquire()
    else:
        prometheus_metrics.record_conversation_lock("acquired")
    try:
        yield
    finally:
        entry.lock.release()
        _checkin(key, entry)


def active_lock_count() -> int:
    with _LOCKS_GUARD:
        return len(_LOCKS)
