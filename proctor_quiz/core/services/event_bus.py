"""In-process bus carrying integrity events from signal sources to consumers."""

from __future__ import annotations

import logging
from typing import Callable

from proctor_quiz.core.models import IntegrityEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[IntegrityEvent], None]


class IntegrityEventBus:
    """Synchronous fan-out of integrity events, plus an append-only journal."""

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []
        self._journal: list[IntegrityEvent] = []

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register a handler and return the matching unsubscribe function."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: IntegrityEvent) -> None:
        self._journal.append(event)
        for handler in list(self._handlers):
            handler(event)

    def events(self) -> list[IntegrityEvent]:
        return list(self._journal)

    def clear(self) -> None:
        self._handlers.clear()
        self._journal.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)
