"""Synchronous event bus for measurement and suite lifecycle events.

Samplers and the orchestrator publish ``DomainEvent`` instances; the
collector and console dashboard subscribe.  A handler that raises is
logged and skipped so an observer can never break a measurement run.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable, Sequence

from dlp_impact.domain.events import DomainEvent

logger = logging.getLogger(__name__)

Handler = Callable[[DomainEvent], None]


class EventBus:
    """Thread-safe synchronous pub-sub for domain events.

    Global handlers run first, then handlers registered for the exact
    event type, each group in registration order.

    Usage::

        bus = EventBus()
        bus.subscribe(CheckCompleted, on_check)
        bus.publish(CheckCompleted(check_name="FileOpenDelay", result=result))
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[type[DomainEvent], list[Handler]] = defaultdict(list)
        self._global_handlers: list[Handler] = []

    # -- subscription -------------------------------------------------------

    def subscribe(self, event_type: type[DomainEvent], handler: Handler) -> None:
        """Register *handler* for a specific *event_type*."""
        with self._lock:
            self._handlers[event_type].append(handler)

    def subscribe_all(self, handler: Handler) -> None:
        """Register *handler* to receive every published event."""
        with self._lock:
            self._global_handlers.append(handler)

    def unsubscribe(self, event_type: type[DomainEvent], handler: Handler) -> bool:
        """Remove *handler* from *event_type*.  Returns ``True`` if found."""
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)
                return True
            return False

    def unsubscribe_all(self, handler: Handler) -> bool:
        """Remove a global handler.  Returns ``True`` if found."""
        with self._lock:
            if handler in self._global_handlers:
                self._global_handlers.remove(handler)
                return True
            return False

    # -- publishing ---------------------------------------------------------

    def publish(self, event: DomainEvent) -> None:
        """Deliver *event* to every matching handler."""
        with self._lock:
            handlers = list(self._global_handlers)
            handlers.extend(self._handlers.get(type(event), []))

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Event handler %r failed for %s", handler, type(event).__name__
                )

    def publish_many(self, events: Sequence[DomainEvent]) -> None:
        """Publish a batch of events in order."""
        for event in events:
            self.publish(event)

    # -- introspection / lifecycle ------------------------------------------

    def handler_count(self, event_type: type[DomainEvent] | None = None) -> int:
        """Number of handlers for *event_type*, or of all handlers."""
        with self._lock:
            if event_type is not None:
                return len(self._handlers.get(event_type, []))
            typed = sum(len(hs) for hs in self._handlers.values())
            return typed + len(self._global_handlers)

    def clear(self) -> None:
        """Remove all registered handlers."""
        with self._lock:
            self._handlers.clear()
            self._global_handlers.clear()
