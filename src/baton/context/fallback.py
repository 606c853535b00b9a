"""
Fallback Resolver

Three-state chain that turns "no usable structured context" into a degraded
but well-defined load result instead of an error::

    STRUCTURED ──(missing / stale / malformed)──> FULL_DETAIL ──(no document)──> ABSENT

- STRUCTURED: the producer's latest context document, if it passes the
  integrity check, goes to the budget allocator.
- FULL_DETAIL: the most recent known ``full_detail_ref`` is fetched and its
  fields are extracted ad hoc (summary plus one field per level-2 section).
  All of them are optional; the result is always ``degraded``. A lookup that
  timed out skips this state, since the store is not read again.
- ABSENT: terminal. Empty result with a warning.

The chain is finite and every state either returns or moves forward, so a
resolution always terminates. Recoverable errors (:class:`IntegrityError`,
:class:`NotFoundError`) are absorbed here; only
:class:`~baton.base.errors.BudgetExceededError` from the structured
allocation reaches the caller.
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum

from baton.base.errors import IntegrityError, NotFoundError
from baton.events.log import EventLog
from baton.events.types import FallbackEvent
from baton.utils.logger import get_logger

from .budget import Budget, BudgetAllocator
from .document import SUMMARY_FIELD, ContextDocument, FullDetailDocument
from .extraction import extract_sections, extract_summary
from .results import LoadResult, Source
from .store import ContextStore

logger = get_logger("fallback")


class ResolverState(str, Enum):
    STRUCTURED = "structured"
    FULL_DETAIL = "full-detail"
    ABSENT = "absent"


@dataclass
class Lookup:
    """Outcome of the store reads for one producer.

    When the structured document is unusable, the full-detail document is
    fetched as part of the same lookup so that all store I/O for a producer
    happens before allocation.

    Attributes:
        producer_id: Producer looked up
        document: Document found, or None
        problem: Why the document is unusable (None when it can be allocated)
        cache_hit: Whether the document came from the loader's read cache
        duration_ms: Time the lookup took
        detail: Full-detail document fetched for an unusable lookup
        detail_problem: Why no full-detail document could be fetched
        timed_out: The lookup was abandoned; the store is not read again
    """

    producer_id: str
    document: ContextDocument | None = None
    problem: str | None = None
    cache_hit: bool = False
    duration_ms: int = 0
    detail: FullDetailDocument | None = None
    detail_problem: str | None = None
    timed_out: bool = False

    @property
    def usable(self) -> bool:
        return self.document is not None and self.problem is None


class FallbackResolver:
    """Resolves one producer through the STRUCTURED → FULL_DETAIL → ABSENT chain."""

    def __init__(
        self,
        store: ContextStore,
        allocator: BudgetAllocator,
        event_log: EventLog | None = None,
    ):
        self.store = store
        self.allocator = allocator
        self.event_log = event_log
        self._known_refs: dict[str, str] = {}
        self._refs_lock = threading.Lock()

    # ------------------------------------------------------------------
    # STRUCTURED
    # ------------------------------------------------------------------

    def lookup(self, producer_id: str, min_version: int | None = None) -> Lookup:
        """Fetch and integrity-check the producer's latest document."""
        started = time.perf_counter()
        try:
            document = self.store.get(producer_id, min_version=min_version)
        except IntegrityError as e:
            document, problem = None, str(e)
        else:
            if document is None:
                problem = (
                    f"No context published at version {min_version} or later"
                    if min_version is not None
                    else "No context published"
                )
            else:
                problem = self.check_integrity(producer_id, document)

        lookup = Lookup(producer_id, document=document, problem=problem)
        if not lookup.usable:
            self.fetch_full_detail(lookup)
        lookup.duration_ms = _elapsed_ms(started)
        return lookup

    def fetch_full_detail(self, lookup: Lookup) -> None:
        """Read the full-detail document for an unusable lookup into ``lookup.detail``."""
        ref = self.known_ref(lookup.producer_id)
        if ref is None:
            lookup.detail_problem = "no full-detail reference known"
            return
        try:
            lookup.detail = self.store.get_full_detail(ref)
        except NotFoundError as e:
            lookup.detail_problem = str(e)

    @staticmethod
    def check_integrity(producer_id: str, document: ContextDocument) -> str | None:
        """Reason the document cannot be used, or None if it passes."""
        if document.producer_id != producer_id:
            return f"Document belongs to '{document.producer_id}', expected '{producer_id}'"
        if not document.summary or not document.summary.strip():
            return "Document has an empty summary"
        return None

    def remember_ref(self, document: ContextDocument) -> None:
        if document.full_detail_ref:
            with self._refs_lock:
                self._known_refs[document.producer_id] = document.full_detail_ref

    def known_ref(self, producer_id: str) -> str | None:
        """Most recent full-detail reference seen for a producer."""
        with self._refs_lock:
            ref = self._known_refs.get(producer_id)
        if ref:
            return ref
        try:
            return self.store.last_full_detail_ref(producer_id)
        except IntegrityError as e:
            logger.debug(f"Could not read reference history for {producer_id}: {e}")
            return None

    # ------------------------------------------------------------------
    # Chain
    # ------------------------------------------------------------------

    def resolve(
        self,
        lookup: Lookup,
        critical: frozenset[str] | set[str],
        optional: frozenset[str] | set[str],
        budget: Budget,
    ) -> LoadResult:
        """Produce the load result for one producer.

        Raises:
            BudgetExceededError: If a usable document's critical fields do not fit
        """
        producer_id = lookup.producer_id

        if lookup.usable:
            self.remember_ref(lookup.document)
            return self.allocator.allocate(
                lookup.document, critical, optional, budget, cache_hit=lookup.cache_hit
            )

        reason = lookup.problem or "No context published"
        self._transition(producer_id, ResolverState.STRUCTURED, ResolverState.FULL_DETAIL, reason)

        if lookup.timed_out:
            absent_reason = f"{reason}; full-detail document not fetched"
        else:
            if lookup.detail is None and lookup.detail_problem is None:
                self.fetch_full_detail(lookup)
            if lookup.detail is not None:
                return self._from_full_detail(producer_id, lookup.detail, reason, budget)
            absent_reason = f"{reason}; {lookup.detail_problem}"

        self._transition(producer_id, ResolverState.FULL_DETAIL, ResolverState.ABSENT, absent_reason)
        return LoadResult.absent(producer_id, absent_reason)

    # ------------------------------------------------------------------
    # FULL_DETAIL
    # ------------------------------------------------------------------

    def _from_full_detail(
        self, producer_id: str, detail: FullDetailDocument, reason: str, budget: Budget
    ) -> LoadResult:
        ref = detail.ref
        payloads: dict[str, str] = {SUMMARY_FIELD: extract_summary(detail.content)}
        for key, body in extract_sections(detail.content).items():
            payloads.setdefault(key, body)

        names = list(payloads)
        allocation = self.allocator.allocate_payloads(
            producer_id, payloads, [], self.allocator.ranker(None, names), budget
        )
        included = [name for name in names if name in set(allocation.included)]
        omitted = [name for name in names if name not in set(included)]

        logger.warning(f"{producer_id}: loaded {len(included)}/{len(names)} fields from full detail {ref}")
        return LoadResult(
            producer_id=producer_id,
            source=Source.FULL_DETAIL,
            fields_included=included,
            fields_omitted=omitted,
            degraded=True,
            content={name: payloads[name] for name in included},
            cost=allocation.cost,
            warnings=[reason, f"Loaded from full-detail document '{ref}'"],
        )

    def _transition(
        self, producer_id: str, from_state: ResolverState, to_state: ResolverState, reason: str
    ) -> None:
        logger.warning(f"{producer_id}: {from_state.value} -> {to_state.value} ({reason})")
        if self.event_log is not None:
            self.event_log.append(
                FallbackEvent(
                    component="fallback",
                    producer_id=producer_id,
                    from_state=from_state.value,
                    to_state=to_state.value,
                    reason=reason,
                )
            )


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
