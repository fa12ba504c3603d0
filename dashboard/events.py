"""Minimal publish/subscribe stream with explicit cancellation tokens."""
from __future__ import annotations

import logging
from collections.abc import Callable
from threading import Lock
from typing import Any

logger = logging.getLogger(__name__)


class Subscription:
    """Cancellation token returned by every subscribe call.

    `cancel()` is idempotent; the first call runs the release callback.
    """

    def __init__(self, release: Callable[[], None] | None = None):
        self._release = release
        self._active = release is not None
        self._lock = Lock()

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
            release, self._release = self._release, None
        release()

    @classmethod
    def inactive(cls) -> "Subscription":
        return cls(None)


class EventStream:
    """Fan-out of events to listeners registered with `subscribe`."""

    def __init__(self, name: str = "events"):
        self.name = name
        self._listeners: dict[int, Callable[[Any], None]] = {}
        self._next_id = 0
        self._lock = Lock()

    def subscribe(self, listener: Callable[[Any], None]) -> Subscription:
        with self._lock:
            key = self._next_id
            self._next_id += 1
            self._listeners[key] = listener
        return Subscription(lambda: self._remove(key))

    def _remove(self, key: int) -> None:
        with self._lock:
            self._listeners.pop(key, None)

    def __len__(self) -> int:
        return len(self._listeners)

    def publish(self, event: Any) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Listener on %s stream failed", self.name)
