"""
Signals — Explicit Subscriptions for Observers
===============================================
Recording and generation state is delivered to observers (a UI, the
CLI, a WebSocket) through a Signal they subscribe to, instead of flags
on a shared object that everyone polls.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Any

logger = logging.getLogger(__name__)


class Signal:
    """A thread-safe list of callbacks.

    emit() calls subscribers synchronously on the emitting thread. A
    subscriber that raises is logged and skipped so a broken observer
    can never break the audio thread or the orchestrator.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._subscribers: list[Callable[[Any], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe():
            self.unsubscribe(callback)

        return _unsubscribe

    def unsubscribe(self, callback: Callable[[Any], None]):
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def emit(self, event: Any):
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception("Subscriber of %s signal failed", self.name or "anonymous")

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)
