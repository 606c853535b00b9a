"""Event emitter for Baton observability.

Components emit typed events through an :class:`EventEmitter`; the emitter
serializes each event once and hands the dict to every registered handler.
Handlers are process-wide and safe to register from any thread.

Usage:
    from baton.events.emitter import EventEmitter, register_event_handler
    from baton.events.types import StatusEvent

    emitter = EventEmitter("loader")
    emitter.emit(StatusEvent(message="Loading..."))

    unregister = register_event_handler(lambda event_dict: queue.put_nowait(event_dict))
    # ... run dashboard ...
    unregister()
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import asdict, replace
from datetime import datetime
from typing import Any

from .types import BaseEvent

logger = logging.getLogger("baton.events")

_handlers: list[Callable[[dict[str, Any]], None]] = []
_handlers_lock = threading.Lock()


def register_event_handler(handler: Callable[[dict[str, Any]], None]) -> Callable[[], None]:
    """Register a handler that receives every serialized event.

    Args:
        handler: Callable that receives serialized event dicts

    Returns:
        Unregister function to remove the handler
    """
    with _handlers_lock:
        _handlers.append(handler)

    def unregister() -> None:
        with _handlers_lock:
            if handler in _handlers:
                _handlers.remove(handler)

    return unregister


def clear_event_handlers() -> None:
    """Clear all registered handlers.

    Useful for testing or complete reset scenarios.
    """
    with _handlers_lock:
        _handlers.clear()


def serialize_event(event: BaseEvent) -> dict[str, Any]:
    """Convert typed event to dict for transport.

    Adds ``event_class`` for reconstruction and renders the timestamp as ISO text.
    """
    result = asdict(event)
    result["event_class"] = type(event).__name__

    if isinstance(result.get("timestamp"), datetime):
        result["timestamp"] = result["timestamp"].isoformat()

    return result


def dispatch_event(serialized: dict[str, Any]) -> None:
    """Hand an already serialized event to every registered handler."""
    with _handlers_lock:
        handlers = list(_handlers)

    for handler in handlers:
        try:
            handler(serialized)
        except Exception as e:
            # A broken observer must not fail the load that emitted the event
            logger.debug(f"Event handler {handler!r} failed: {e}")


class EventEmitter:
    """Emits typed events to registered handlers.

    Attributes:
        component: Default component name for events without one set
    """

    def __init__(self, component: str):
        self.component = component

    def stamp(self, event: BaseEvent) -> BaseEvent:
        """Copy of the event carrying the default component if it has none."""
        if event.component:
            return event
        return replace(event, component=self.component)

    def prepare(self, event: BaseEvent) -> dict[str, Any]:
        """Stamp the default component and serialize without dispatching."""
        return serialize_event(self.stamp(event))

    def emit(self, event: BaseEvent) -> dict[str, Any]:
        """Emit a typed event.

        Args:
            event: The typed event to emit

        Returns:
            The serialized form handed to handlers
        """
        serialized = self.prepare(event)
        dispatch_event(serialized)
        return serialized
