"""
Pytest configuration and shared test utilities.

This module provides shared fixtures and factories for all Baton tests.
"""

from typing import Any

import pytest

from baton.context import (
    BudgetAllocator,
    ContextDocument,
    ContextLoader,
    FieldClassifier,
    InMemoryContextStore,
    TokenEstimateCost,
)
from baton.events import EventLog, MemorySink, clear_event_handlers
from baton.utils.config import DEFAULT_CONTEXT_SETTINGS, reset_config

# ===================================================================
# Test Document Factory
# ===================================================================


def make_document(
    producer_id: str = "P1",
    version: int = 1,
    summary: str = "ok",
    **overrides: Any,
) -> ContextDocument:
    """Factory function to create context documents with minimal boilerplate.

    Examples:
        Scenario document::

            doc = make_document(key_findings={"a": 1, "b": 2}, next_agent_needs={"C1": ["a"]})

        Document pointing at a full-detail file::

            doc = make_document(full_detail_ref="docs/prd.md")
    """
    return ContextDocument(producer_id=producer_id, version=version, summary=summary, **overrides)


# ===================================================================
# Isolation
# ===================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Run every test against built-in defaults, away from any config.yml or .env."""
    monkeypatch.delenv("CONFIG_FILE", raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()


@pytest.fixture(autouse=True)
def clean_event_handlers():
    """Ensure no handler registered by one test leaks into the next."""
    clear_event_handlers()
    yield
    clear_event_handlers()


# ===================================================================
# Component Fixtures
# ===================================================================


@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def event_log(memory_sink) -> EventLog:
    return EventLog(sinks=[memory_sink])


@pytest.fixture
def store(event_log) -> InMemoryContextStore:
    return InMemoryContextStore(event_log=event_log)


@pytest.fixture
def settings() -> dict[str, Any]:
    """Default context settings with the read cache off, so every load sees the latest put."""
    return {**DEFAULT_CONTEXT_SETTINGS, "enable_cache": False}


@pytest.fixture
def allocator(event_log) -> BudgetAllocator:
    return BudgetAllocator(TokenEstimateCost(0.25), event_log=event_log)


@pytest.fixture
def loader(store, allocator, event_log, settings) -> ContextLoader:
    return ContextLoader(
        store,
        classifier=FieldClassifier(),
        allocator=allocator,
        event_log=event_log,
        settings=settings,
    )
