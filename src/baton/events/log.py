"""Append-only event log shared by concurrent load requests.

The log keeps every appended event in memory (readable as an immutable
snapshot), writes the serialized form to each configured sink, and forwards
it to handlers registered with :func:`~baton.events.emitter.register_event_handler`.
Appends are serialized under a single lock; nothing is ever updated in place.

Usage:
    from baton.events import EventLog, JsonLinesSink

    log = EventLog(sinks=[JsonLinesSink("events.jsonl")])
    loader = ContextLoader(store, event_log=log)
    ...
    misses = [e for e in log.records(ContextLoadEvent) if e.outcome == "miss"]
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from collections import Counter
from pathlib import Path
from typing import Any, TypeVar

from .emitter import EventEmitter, dispatch_event, serialize_event
from .types import BaseEvent, ContextLoadEvent

E = TypeVar("E", bound=BaseEvent)

logger = logging.getLogger("baton.events")


class EventSink(ABC):
    """Destination for serialized events."""

    @abstractmethod
    def write(self, serialized: dict[str, Any]) -> None:
        """Persist one serialized event."""


class MemorySink(EventSink):
    """Keeps serialized events in a list (tests, short-lived tools)."""

    def __init__(self):
        self.items: list[dict[str, Any]] = []

    def write(self, serialized: dict[str, Any]) -> None:
        self.items.append(serialized)


class JsonLinesSink(EventSink):
    """Appends one JSON object per line to a file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def write(self, serialized: dict[str, Any]) -> None:
        line = json.dumps(serialized, sort_keys=True, default=str)
        with self._lock, open(self.path, "a", encoding="utf-8") as f:
            f.write(line + "\n")


class EventLog:
    """Thread-safe append-only record of load attempts and decisions."""

    def __init__(self, sinks: list[EventSink] | None = None, component: str = "event_log"):
        self._sinks = list(sinks or [])
        self._events: list[BaseEvent] = []
        self._lock = threading.Lock()
        self._emitter = EventEmitter(component)

    @classmethod
    def from_config(cls) -> "EventLog":
        """Build a log with the sinks named in the ``events`` config section."""
        from baton.utils.config import get_config_value

        sinks: list[EventSink] = []
        jsonl_path = get_config_value("events.jsonl_path")
        if jsonl_path:
            sinks.append(JsonLinesSink(jsonl_path))
        return cls(sinks=sinks)

    def add_sink(self, sink: EventSink) -> None:
        with self._lock:
            self._sinks.append(sink)

    def append(self, event: BaseEvent) -> dict[str, Any]:
        """Append an event; returns its serialized form."""
        event = self._emitter.stamp(event)
        serialized = serialize_event(event)
        with self._lock:
            self._events.append(event)
            for sink in self._sinks:
                try:
                    sink.write(serialized)
                except Exception as e:
                    # The event stays recorded in memory; only this sink misses it
                    logger.warning(f"Event sink {sink!r} failed: {e}")
        dispatch_event(serialized)
        return serialized

    def records(self, event_type: type[E] | None = None) -> tuple[E, ...]:
        """Snapshot of appended events, optionally filtered by type."""
        with self._lock:
            events = tuple(self._events)
        if event_type is None:
            return events
        return tuple(e for e in events if isinstance(e, event_type))

    def outcome_counts(self) -> dict[str, int]:
        """Count of load records per outcome."""
        return dict(Counter(e.outcome for e in self.records(ContextLoadEvent)))

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
