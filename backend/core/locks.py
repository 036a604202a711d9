"""
In-process mutual exclusion keyed by record identity.

Every create/update against a room, and every catalog change to that room,
runs while holding that room's lock. Payment writes use the same registry
under their own namespaces. Locks are created on first use and never removed,
so two callers asking for the same key always receive the same lock object;
different keys never contend.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Tuple

ROOM = "room"
RESERVATION_PAYMENT = "reservation-payment"
PAYMENT = "payment"

_REGISTRY_LOCK = threading.Lock()
_LOCKS: Dict[Tuple[str, str], threading.Lock] = {}


def get_lock(namespace: str, key) -> threading.Lock:
    registry_key = (namespace, str(key))
    with _REGISTRY_LOCK:
        lock = _LOCKS.get(registry_key)
        if lock is None:
            lock = threading.Lock()
            _LOCKS[registry_key] = lock
        return lock


@contextmanager
def keyed_lock(namespace: str, key) -> Iterator[None]:
    """Hold the lock for ``(namespace, key)`` for the duration of the block."""
    with get_lock(namespace, key):
        yield


def room_lock(room_id):
    return keyed_lock(ROOM, room_id)


def known_lock_count(namespace: str | None = None) -> int:
    with _REGISTRY_LOCK:
        if namespace is None:
            return len(_LOCKS)
        return sum(1 for ns, _ in _LOCKS if ns == namespace)
