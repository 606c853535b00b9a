"""Baton Event System.

Typed dataclass events describing how context was published and loaded,
plus the shared append-only :class:`EventLog`.

Architecture:
    - Events are typed dataclasses defined in types.py
    - EventEmitter in emitter.py serializes events and fans them out to handlers
    - EventLog in log.py keeps the append-only record and writes to sinks
    - parse_event() in parser.py reconstructs typed events from sink dicts

Usage:
    from baton.events import EventLog, ContextLoadEvent

    log = EventLog()
    ...
    for record in log.records(ContextLoadEvent):
        match record:
            case ContextLoadEvent(outcome="fallback", producer_id=p):
                print(f"{p} served from full detail")
"""

from .emitter import (
    EventEmitter,
    clear_event_handlers,
    dispatch_event,
    register_event_handler,
    serialize_event,
)
from .log import EventLog, EventSink, JsonLinesSink, MemorySink
from .parser import (
    EVENT_CLASSES,
    is_baton_event,
    parse_event,
)
from .types import (
    BaseEvent,
    BatonEvent,
    BudgetDecisionEvent,
    ContextLoadEvent,
    ContextPublishedEvent,
    ErrorEvent,
    FallbackEvent,
    LoadOutcome,
    StatusEvent,
)

__all__ = [
    # Types
    "BaseEvent",
    "BatonEvent",
    "StatusEvent",
    "ContextLoadEvent",
    "LoadOutcome",
    "FallbackEvent",
    "BudgetDecisionEvent",
    "ContextPublishedEvent",
    "ErrorEvent",
    # Emitter
    "EventEmitter",
    "register_event_handler",
    "clear_event_handlers",
    "dispatch_event",
    "serialize_event",
    # Log
    "EventLog",
    "EventSink",
    "MemorySink",
    "JsonLinesSink",
    # Parser
    "parse_event",
    "is_baton_event",
    "EVENT_CLASSES",
]
