"""In-process event dispatcher.

Listeners subscribe per event class. Dispatch is fire-and-forget for the
producer: a failing listener is logged and skipped, never re-raised and
never retried here.
"""
import logging
from collections import defaultdict
from typing import Callable

from app.events.types import DomainEvent

logger = logging.getLogger(__name__)

Listener = Callable[[DomainEvent], None]


class EventDispatcher:
    def __init__(self):
        self._listeners: dict[type, list[Listener]] = defaultdict(list)

    def subscribe(self, event_type: type, listener: Listener) -> None:
        if listener not in self._listeners[event_type]:
            self._listeners[event_type].append(listener)
            logger.debug("Subscribed %s to %s", getattr(listener, "__name__", listener), event_type.__name__)

    def unsubscribe(self, event_type: type, listener: Listener) -> None:
        if listener in self._listeners.get(event_type, []):
            self._listeners[event_type].remove(listener)

    def listeners_for(self, event: DomainEvent) -> list[Listener]:
        """Listeners registered for the event's class or any of its bases."""
        found: list[Listener] = []
        for klass in type(event).__mro__:
            for listener in self._listeners.get(klass, []):
                if listener not in found:
                    found.append(listener)
        return found

    def dispatch(self, event: DomainEvent) -> None:
        listeners = self.listeners_for(event)
        logger.debug("Dispatching %s to %d listener(s)", event.name, len(listeners))
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Listener %r failed while handling %s", listener, event.name)

    def clear(self) -> None:
        self._listeners.clear()


# Global instance
dispatcher = EventDispatcher()
