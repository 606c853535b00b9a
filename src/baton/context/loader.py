"""
Context Loader

Entry point for consumers. One :meth:`ContextLoader.load` call classifies
each requested producer's fields, resolves its context through the fallback
chain, allocates fields against a single shared budget, and appends one
:class:`~baton.events.types.ContextLoadEvent` per producer to the event log.

Lookups for all producers fan out over a thread pool; allocation then runs in
the caller's order, so earlier producers are favored when the budget is
tight. Each lookup also fetches the full-detail document when the structured
one is unusable, so the timeout bounds every store read. A lookup that
outlives the timeout is treated as a miss for that producer and the load
carries on.

Usage:
    from baton.context import Budget, ContextLoader, InMemoryContextStore

    store = InMemoryContextStore()
    loader = ContextLoader(store)
    results = loader.load("coder_agent", ["prd_agent", "architect_agent"], Budget(2000))
    if results["prd_agent"].degraded:
        ...
"""

import threading
import time
from collections import Counter
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

from baton.base.errors import BudgetExceededError
from baton.events.log import EventLog
from baton.events.types import ContextLoadEvent, ErrorEvent
from baton.utils.config import get_context_settings
from baton.utils.logger import get_logger

from .budget import Budget, BudgetAllocator
from .classifier import ClassificationRegistry, FieldClassifier
from .document import ContextDocument
from .fallback import FallbackResolver, Lookup
from .results import LoadResult
from .store import ContextStore

logger = get_logger("loader")


class ContextLoader:
    """Loads producer context for a consumer under a cost budget.

    Args:
        store: Where producers publish
        classifier: Critical/optional split (defaults to rules from config)
        allocator: Budget allocator (defaults to the configured cost unit)
        event_log: Shared append-only log (defaults to the configured sinks)
        settings: ``context`` settings override (defaults to config)
    """

    def __init__(
        self,
        store: ContextStore,
        classifier: FieldClassifier | None = None,
        allocator: BudgetAllocator | None = None,
        event_log: EventLog | None = None,
        settings: dict[str, Any] | None = None,
    ):
        self.settings = settings or get_context_settings()
        self.store = store
        self.event_log = event_log if event_log is not None else EventLog.from_config()
        self.classifier = (
            classifier if classifier is not None else FieldClassifier(ClassificationRegistry.from_config())
        )
        self.allocator = allocator if allocator is not None else BudgetAllocator(event_log=self.event_log)
        self.resolver = FallbackResolver(store, self.allocator, self.event_log)

        self._cache: dict[tuple[str, int | None], tuple[float, ContextDocument]] = {}
        self._cache_lock = threading.Lock()

        self._stats_lock = threading.Lock()
        self._stats: dict[str, Any] = {
            "total_loads": 0,
            "producers_processed": 0,
            "cache_hits": 0,
            "cache_misses": 0,
            "loaded_cost": 0,
            "full_cost": 0,
        }
        self._outcomes: Counter[str] = Counter()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(
        self,
        consumer_id: str,
        producer_ids: Iterable[str],
        budget: Budget | None = None,
        *,
        min_versions: dict[str, int] | None = None,
        timeout: float | None = None,
    ) -> dict[str, LoadResult]:
        """Load context from each producer for ``consumer_id``.

        Args:
            consumer_id: Agent requesting context
            producer_ids: Producers in priority order (a set is sorted);
                duplicates are dropped keeping the first occurrence
            budget: Shared cost budget (defaults to ``context.default_ceiling``)
            min_versions: Per-producer version floor; older documents count as stale
            timeout: Seconds to wait for all lookups (defaults to
                ``context.lookup_timeout_seconds``)

        Returns:
            Producer id -> load result, in processing order

        Raises:
            BudgetExceededError: If a producer's critical fields do not fit the
                remaining budget. Events for producers already processed are
                recorded first.
        """
        producers = _ordered_producers(producer_ids)
        budget = budget if budget is not None else Budget.from_config()
        min_versions = min_versions or {}
        timeout = timeout if timeout is not None else self.settings["lookup_timeout_seconds"]

        started = time.perf_counter()
        lookups = self._fetch_all(producers, min_versions, timeout)

        results: dict[str, LoadResult] = {}
        for producer_id in producers:
            lookup = lookups[producer_id]
            producer_started = time.perf_counter()
            critical, optional = self.classifier.classify(producer_id, consumer_id, lookup.document)
            try:
                result = self.resolver.resolve(lookup, critical, optional, budget)
            except BudgetExceededError as e:
                self.event_log.append(
                    ErrorEvent(
                        component="loader",
                        error_type=type(e).__name__,
                        error_message=str(e),
                        recoverable=False,
                    )
                )
                logger.error(f"Load for {consumer_id} aborted at {producer_id}: {e}")
                raise

            duration_ms = lookup.duration_ms + int((time.perf_counter() - producer_started) * 1000)
            self._record(consumer_id, result, lookup, duration_ms)
            results[producer_id] = result

        with self._stats_lock:
            self._stats["total_loads"] += 1
        logger.timing(
            f"Loaded {len(results)} producers for {consumer_id} in "
            f"{(time.perf_counter() - started) * 1000:.0f}ms ({budget.spent}/{budget.ceiling} spent)"
        )
        return results

    def load_one(
        self,
        consumer_id: str,
        producer_id: str,
        budget: Budget | None = None,
        *,
        min_version: int | None = None,
    ) -> LoadResult:
        """Convenience wrapper for a single producer."""
        min_versions = {producer_id: min_version} if min_version is not None else None
        return self.load(consumer_id, [producer_id], budget, min_versions=min_versions)[producer_id]

    def _fetch_all(
        self, producers: list[str], min_versions: dict[str, int], timeout: float
    ) -> dict[str, Lookup]:
        if not producers:
            return {}

        executor = ThreadPoolExecutor(
            max_workers=min(self.settings["max_workers"], len(producers)),
            thread_name_prefix="baton-lookup",
        )
        try:
            futures: dict[str, Future[Lookup]] = {
                producer_id: executor.submit(self._lookup, producer_id, min_versions.get(producer_id))
                for producer_id in producers
            }
            wait(futures.values(), timeout=timeout)
        finally:
            # Lookups still running after the timeout are abandoned, not awaited
            executor.shutdown(wait=False, cancel_futures=True)

        lookups = {}
        for producer_id, future in futures.items():
            if future.done() and not future.cancelled():
                lookups[producer_id] = future.result()
            else:
                logger.warning(f"Lookup for {producer_id} timed out after {timeout}s")
                lookups[producer_id] = Lookup(
                    producer_id,
                    problem=f"Lookup timed out after {timeout}s",
                    duration_ms=int(timeout * 1000),
                    timed_out=True,
                )
        return lookups

    def _lookup(self, producer_id: str, min_version: int | None) -> Lookup:
        cached = self._cache_get(producer_id, min_version)
        if cached is not None:
            with self._stats_lock:
                self._stats["cache_hits"] += 1
            return Lookup(producer_id, document=cached, cache_hit=True)

        with self._stats_lock:
            self._stats["cache_misses"] += 1
        lookup = self.resolver.lookup(producer_id, min_version)
        if lookup.usable:
            self._cache_put(producer_id, min_version, lookup.document)
        return lookup

    # ------------------------------------------------------------------
    # Read cache
    # ------------------------------------------------------------------

    def _cache_get(self, producer_id: str, min_version: int | None) -> ContextDocument | None:
        if not self.settings["enable_cache"]:
            return None
        with self._cache_lock:
            entry = self._cache.get((producer_id, min_version))
            if entry is None:
                return None
            expires_at, document = entry
            if time.monotonic() >= expires_at:
                del self._cache[(producer_id, min_version)]
                return None
            return document

    def _cache_put(self, producer_id: str, min_version: int | None, document: ContextDocument) -> None:
        if not self.settings["enable_cache"]:
            return
        expires_at = time.monotonic() + self.settings["cache_ttl_seconds"]
        with self._cache_lock:
            self._cache[(producer_id, min_version)] = (expires_at, document)

    def invalidate(self, producer_id: str | None = None) -> None:
        """Drop cached documents for one producer, or all of them."""
        with self._cache_lock:
            if producer_id is None:
                self._cache.clear()
                return
            for key in [key for key in self._cache if key[0] == producer_id]:
                del self._cache[key]

    # ------------------------------------------------------------------
    # Events and statistics
    # ------------------------------------------------------------------

    def _record(self, consumer_id: str, result: LoadResult, lookup: Lookup, duration_ms: int) -> None:
        self.event_log.append(
            ContextLoadEvent(
                component="loader",
                consumer_id=consumer_id,
                producer_id=result.producer_id,
                outcome=result.outcome,
                cost_spent=result.cost,
                fields_omitted_count=len(result.fields_omitted),
                source=result.source.value,
                cache_hit=result.cache_hit,
                duration_ms=duration_ms,
            )
        )

        full_cost = result.cost
        if lookup.usable:
            full_cost = sum(self.allocator.cost(value) for value in lookup.document.full_payload().values())

        with self._stats_lock:
            self._stats["producers_processed"] += 1
            self._stats["loaded_cost"] += result.cost
            self._stats["full_cost"] += full_cost
            self._outcomes[result.outcome] += 1

        if result.degraded:
            logger.debug(
                f"{result.producer_id} -> {consumer_id}: {result.outcome}, "
                f"omitted {', '.join(result.fields_omitted) or 'nothing'}"
            )

    def loading_stats(self) -> dict[str, Any]:
        """Counters accumulated over every load made through this loader."""
        with self._stats_lock:
            stats = dict(self._stats)
            stats["outcomes"] = dict(self._outcomes)

        lookups = stats["cache_hits"] + stats["cache_misses"]
        stats["hit_rate"] = stats["cache_hits"] / lookups if lookups else 0.0
        full_cost = stats["full_cost"]
        stats["reduction_percentage"] = (
            round((1 - stats["loaded_cost"] / full_cost) * 100, 1) if full_cost else 0.0
        )
        with self._cache_lock:
            stats["cached_documents"] = len(self._cache)
        return stats


def _ordered_producers(producer_ids: Iterable[str]) -> list[str]:
    if isinstance(producer_ids, str):
        producer_ids = [producer_ids]
    elif isinstance(producer_ids, set | frozenset):
        producer_ids = sorted(producer_ids)
    return list(dict.fromkeys(producer_ids))
