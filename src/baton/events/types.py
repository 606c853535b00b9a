"""Typed event classes for Baton observability.

Events are dataclasses that serialize to dicts for any append-only sink
(memory, JSON lines file, log stream).

Event Categories:
- Status Events: messages forwarded by component loggers
- Load Events: one record per producer processed by a load request
- Fallback Events: resolver state transitions
- Budget Events: allocation decisions
- Publish Events: documents accepted or rejected by the store
- Error Events: failures surfaced to the caller

Usage:
    from baton.events.types import ContextLoadEvent

    event = ContextLoadEvent(consumer_id="coder_agent", producer_id="prd_agent", outcome="hit")
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

LoadOutcome = Literal["hit", "partial", "fallback", "miss"]


@dataclass
class BaseEvent:
    """Base class for all Baton events.

    Attributes:
        timestamp: When the event was created
        component: The component that emitted this event (e.g., "loader", "store")
    """

    timestamp: datetime = field(default_factory=datetime.now)
    component: str = ""


# -----------------------------------------------------------------------------
# Status Events
# -----------------------------------------------------------------------------


@dataclass
class StatusEvent(BaseEvent):
    """Status message forwarded from a component logger.

    Attributes:
        message: The status message
        level: Severity/type of the status
    """

    message: str = ""
    level: Literal[
        "info", "warning", "error", "debug", "success", "status", "key_info", "timing"
    ] = "info"


# -----------------------------------------------------------------------------
# Load Events
# -----------------------------------------------------------------------------


@dataclass
class ContextLoadEvent(BaseEvent):
    """Event record written once per producer processed by a load request.

    Attributes:
        consumer_id: Agent that requested context
        producer_id: Agent whose context was requested
        outcome: hit (complete structured load), partial (structured, some fields
            omitted), fallback (full-detail document used), miss (nothing available)
        cost_spent: Budget units charged for this producer
        fields_omitted_count: Number of fields left out
        source: Where the data came from (structured, full-detail, absent)
        cache_hit: Whether the structured lookup was served from the read cache
        duration_ms: Time spent on this producer, lookup included
    """

    consumer_id: str = ""
    producer_id: str = ""
    outcome: LoadOutcome = "miss"
    cost_spent: int = 0
    fields_omitted_count: int = 0
    source: Literal["structured", "full-detail", "absent"] = "absent"
    cache_hit: bool = False
    duration_ms: int = 0


@dataclass
class FallbackEvent(BaseEvent):
    """Fallback resolver moved to a degraded state.

    Attributes:
        producer_id: Producer whose structured context was unusable
        from_state: State being left
        to_state: State entered
        reason: Why the transition happened
    """

    producer_id: str = ""
    from_state: str = ""
    to_state: str = ""
    reason: str = ""


@dataclass
class BudgetDecisionEvent(BaseEvent):
    """Outcome of one allocation against a shared budget.

    Attributes:
        producer_id: Producer whose fields were allocated
        ceiling: Budget ceiling
        critical_cost: Units charged for critical fields
        optional_cost: Units charged for optional fields
        remaining: Units left after the allocation
        skipped_fields: Optional fields skipped because they did not fit
    """

    producer_id: str = ""
    ceiling: int = 0
    critical_cost: int = 0
    optional_cost: int = 0
    remaining: int = 0
    skipped_fields: list[str] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Publish Events
# -----------------------------------------------------------------------------


@dataclass
class ContextPublishedEvent(BaseEvent):
    """A producer published (or tried to publish) a context document.

    Attributes:
        producer_id: Publishing agent
        version: Version offered
        accepted: False when the store rejected the document
        summary_truncated: Whether the summary was cut to the configured bound
    """

    producer_id: str = ""
    version: int = 0
    accepted: bool = True
    summary_truncated: bool = False


# -----------------------------------------------------------------------------
# Error Events
# -----------------------------------------------------------------------------


@dataclass
class ErrorEvent(BaseEvent):
    """Error surfaced to a caller.

    Attributes:
        error_type: Exception class name
        error_message: Human-readable message
        recoverable: Whether the error was absorbed by the fallback chain
    """

    error_type: str = ""
    error_message: str = ""
    recoverable: bool = False


BatonEvent = (
    StatusEvent
    | ContextLoadEvent
    | FallbackEvent
    | BudgetDecisionEvent
    | ContextPublishedEvent
    | ErrorEvent
)
