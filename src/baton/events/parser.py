"""Event parser for reconstructing typed events from serialized dicts.

Sinks such as :class:`~baton.events.log.JsonLinesSink` store events as plain
dicts; ``parse_event`` turns them back into the dataclasses so tooling can
pattern-match on them.

Usage:
    from baton.events.parser import parse_event
    from baton.events.types import ContextLoadEvent

    for line in path.read_text().splitlines():
        match parse_event(json.loads(line)):
            case ContextLoadEvent(outcome="miss", producer_id=producer):
                report_missing(producer)
"""

import dataclasses
from datetime import datetime
from typing import Any

from .types import (
    BatonEvent,
    BudgetDecisionEvent,
    ContextLoadEvent,
    ContextPublishedEvent,
    ErrorEvent,
    FallbackEvent,
    StatusEvent,
)

# Mapping of event class names to their classes
EVENT_CLASSES: dict[str, type] = {
    "StatusEvent": StatusEvent,
    "ContextLoadEvent": ContextLoadEvent,
    "FallbackEvent": FallbackEvent,
    "BudgetDecisionEvent": BudgetDecisionEvent,
    "ContextPublishedEvent": ContextPublishedEvent,
    "ErrorEvent": ErrorEvent,
}


def parse_event(data: dict[str, Any]) -> BatonEvent | None:
    """Reconstruct typed event from a serialized dict.

    Args:
        data: Dictionary containing serialized event data.
              Must have "event_class" key for typed events.

    Returns:
        Reconstructed event instance, or None if not a valid Baton event
    """
    if not isinstance(data, dict):
        return None

    data = data.copy()

    event_class_name = data.pop("event_class", None)
    if not event_class_name:
        return None

    event_class = EVENT_CLASSES.get(event_class_name)
    if not event_class:
        return None

    if "timestamp" in data and isinstance(data["timestamp"], str):
        try:
            data["timestamp"] = datetime.fromisoformat(data["timestamp"])
        except ValueError:
            data["timestamp"] = datetime.now()

    valid_fields = {f.name for f in dataclasses.fields(event_class)}
    filtered_data = {k: v for k, v in data.items() if k in valid_fields}

    try:
        return event_class(**filtered_data)
    except TypeError:
        return None


def is_baton_event(data: dict[str, Any]) -> bool:
    """Check if a dict represents a Baton typed event."""
    if not isinstance(data, dict):
        return False
    return data.get("event_class") in EVENT_CLASSES
