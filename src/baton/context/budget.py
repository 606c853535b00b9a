"""
Budget and Budget Allocator

A :class:`Budget` is the cost ceiling of one loading session, shared by every
producer a consumer asks for. The :class:`BudgetAllocator` charges critical
fields in full or not at all, then packs optional fields greedily in ranked
order, skipping (never truncating) any field that does not fit.

Packing is "first admissible": a smaller, lower-ranked field that still fits
is taken even after a larger one was skipped. It is not optimal bin-packing;
the same inputs always produce the same selection.

Cost units are a policy choice expressed as a :class:`CostFunction`:

- :class:`TokenEstimateCost` (default): ``ceil(len(canonical_json) * chars_to_tokens)``
- :class:`ByteSizeCost`: UTF-8 length of the canonical JSON
"""

import math
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from baton.base.errors import BudgetExceededError
from baton.events.log import EventLog
from baton.events.types import BudgetDecisionEvent
from baton.utils.config import get_context_settings
from baton.utils.logger import get_logger

from .document import ContextDocument, canonical_json
from .results import LoadResult, Source

logger = get_logger("budget")

Ranker = Callable[[ContextDocument | None, list[str]], list[str]]


# ===================================================================
# Cost functions
# ===================================================================


class CostFunction(ABC):
    """Maps a JSON-compatible field payload to integer cost units."""

    unit: str = ""

    @abstractmethod
    def __call__(self, payload: Any) -> int: ...


class TokenEstimateCost(CostFunction):
    """Approximate LLM tokens: a fixed ratio of canonical JSON characters."""

    unit = "tokens"

    def __init__(self, chars_to_tokens: float = 0.25):
        if chars_to_tokens < 0:
            raise ValueError("chars_to_tokens must not be negative")
        self.chars_to_tokens = chars_to_tokens

    def __call__(self, payload: Any) -> int:
        return math.ceil(len(canonical_json(payload)) * self.chars_to_tokens)


class ByteSizeCost(CostFunction):
    """UTF-8 size of the canonical JSON."""

    unit = "bytes"

    def __call__(self, payload: Any) -> int:
        return len(canonical_json(payload).encode("utf-8"))


def cost_function_from_settings(settings: dict[str, Any] | None = None) -> CostFunction:
    """Cost function selected by ``context.cost_unit``."""
    settings = settings or get_context_settings()
    if settings["cost_unit"] == "bytes":
        return ByteSizeCost()
    return TokenEstimateCost(settings["chars_to_tokens"])


def declaration_order(document: ContextDocument | None, names: list[str]) -> list[str]:
    """Default value heuristic: fields declared first are worth more."""
    return list(names)


# ===================================================================
# Budget
# ===================================================================


class Budget:
    """Cost ceiling plus running ``spent`` counter for one loading session.

    ``spent`` never exceeds ``ceiling``. All mutation happens under
    :attr:`lock`; the allocator holds it for a whole allocation so that
    concurrent requests sharing a budget cannot interleave their charges.
    """

    def __init__(self, ceiling: int):
        if ceiling < 0:
            raise ValueError(f"Budget ceiling must not be negative, got {ceiling}")
        self.ceiling = int(ceiling)
        self._spent = 0
        self.lock = threading.RLock()

    @classmethod
    def from_config(cls) -> "Budget":
        return cls(get_context_settings()["default_ceiling"])

    @property
    def spent(self) -> int:
        with self.lock:
            return self._spent

    @property
    def remaining(self) -> int:
        with self.lock:
            return self.ceiling - self._spent

    def try_spend(self, amount: int) -> bool:
        """Charge ``amount`` if it fits; returns whether it was charged."""
        if amount < 0:
            raise ValueError("amount must not be negative")
        with self.lock:
            if self._spent + amount > self.ceiling:
                return False
            self._spent += amount
            return True

    def __repr__(self) -> str:
        return f"Budget(ceiling={self.ceiling}, spent={self.spent})"


# ===================================================================
# Allocator
# ===================================================================


@dataclass
class Allocation:
    """Selection made for one producer."""

    included: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    critical_cost: int = 0
    optional_cost: int = 0

    @property
    def cost(self) -> int:
        return self.critical_cost + self.optional_cost


class BudgetAllocator:
    """Decides which fields of a producer's context fit in the shared budget."""

    def __init__(
        self,
        cost_function: CostFunction | None = None,
        ranker: Ranker | None = None,
        event_log: EventLog | None = None,
    ):
        self.cost_function = cost_function or cost_function_from_settings()
        self.ranker = ranker or declaration_order
        self.event_log = event_log

    def cost(self, payload: Any) -> int:
        return self.cost_function(payload)

    def allocate(
        self,
        document: ContextDocument,
        critical_fields: set[str] | list[str],
        optional_fields: set[str] | list[str],
        budget: Budget,
        *,
        cache_hit: bool = False,
    ) -> LoadResult:
        """Select critical plus as many optional fields as fit.

        Fields of the document listed in neither set are optional. Critical
        references the document cannot satisfy are reported as omitted.

        Raises:
            BudgetExceededError: If the critical fields alone do not fit
        """
        critical, missing_critical = document.resolve_fields(critical_fields)
        listed_optional, _ = document.resolve_fields(optional_fields)
        optional_set = set(listed_optional) | set(document.field_names())
        optional = [name for name in document.field_names() if name in optional_set and name not in critical]

        payloads = {name: document.field_payload(name) for name in document.field_names()}
        allocation = self.allocate_payloads(
            document.producer_id, payloads, critical, self.ranker(document, optional), budget
        )

        warnings = []
        if missing_critical:
            warnings.append(
                f"Critical fields not present in version {document.version}: {', '.join(missing_critical)}"
            )
            logger.warning(f"{document.producer_id}: {warnings[-1]}")

        included = [name for name in document.field_names() if name in set(allocation.included)]
        omitted = [name for name in document.field_names() if name not in set(included)]
        omitted.extend(missing_critical)

        return LoadResult(
            producer_id=document.producer_id,
            source=Source.STRUCTURED,
            fields_included=included,
            fields_omitted=omitted,
            degraded=bool(omitted),
            content={name: payloads[name] for name in included},
            cost=allocation.cost,
            version=document.version,
            warnings=warnings,
            cache_hit=cache_hit,
        )

    def allocate_payloads(
        self,
        producer_id: str,
        payloads: dict[str, Any],
        critical: list[str],
        ranked_optional: list[str],
        budget: Budget,
    ) -> Allocation:
        """Charge ``critical`` in full, then pack ``ranked_optional`` first-admissible.

        Runs atomically against ``budget``. Nothing is charged when the critical
        fields do not fit.
        """
        critical_costs = {name: self.cost(payloads[name]) for name in critical}
        critical_total = sum(critical_costs.values())

        with budget.lock:
            available = budget.remaining
            if critical_total > available:
                logger.error(
                    f"{producer_id}: critical fields need {critical_total} "
                    f"{self.cost_function.unit}, {available} available"
                )
                raise BudgetExceededError(producer_id, critical_total, available)

            budget.try_spend(critical_total)
            allocation = Allocation(included=list(critical), critical_cost=critical_total)

            for name in ranked_optional:
                if name in critical_costs:
                    continue
                field_cost = self.cost(payloads[name])
                if budget.try_spend(field_cost):
                    allocation.included.append(name)
                    allocation.optional_cost += field_cost
                else:
                    allocation.skipped.append(name)

            remaining = budget.remaining

        logger.debug(
            f"{producer_id}: charged {allocation.cost} ({allocation.critical_cost} critical), "
            f"skipped {len(allocation.skipped)}, {remaining} left"
        )
        if self.event_log is not None:
            self.event_log.append(
                BudgetDecisionEvent(
                    component="budget",
                    producer_id=producer_id,
                    ceiling=budget.ceiling,
                    critical_cost=allocation.critical_cost,
                    optional_cost=allocation.optional_cost,
                    remaining=remaining,
                    skipped_fields=list(allocation.skipped),
                )
            )
        return allocation
