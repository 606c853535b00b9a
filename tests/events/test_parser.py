"""Tests for event serialization and parsing."""

from datetime import datetime

import pytest

from baton.events import (
    EVENT_CLASSES,
    BudgetDecisionEvent,
    ContextLoadEvent,
    FallbackEvent,
    is_baton_event,
    parse_event,
    serialize_event,
)


class TestSerializeEvent:
    def test_adds_event_class_and_iso_timestamp(self):
        event = ContextLoadEvent(
            timestamp=datetime(2024, 5, 1, 9, 30),
            producer_id="P1",
            outcome="hit",
        )
        data = serialize_event(event)
        assert data["event_class"] == "ContextLoadEvent"
        assert data["timestamp"] == "2024-05-01T09:30:00"
        assert data["outcome"] == "hit"


class TestParseEvent:
    def test_round_trip(self):
        event = BudgetDecisionEvent(
            timestamp=datetime(2024, 5, 1, 9, 30),
            component="budget",
            producer_id="P1",
            ceiling=10,
            critical_cost=4,
            optional_cost=2,
            remaining=4,
            skipped_fields=["long"],
        )
        assert parse_event(serialize_event(event)) == event

    def test_unknown_keys_ignored(self):
        data = serialize_event(FallbackEvent(producer_id="P1"))
        data["added_later"] = True
        parsed = parse_event(data)
        assert isinstance(parsed, FallbackEvent)
        assert parsed.producer_id == "P1"

    def test_bad_timestamp_replaced(self):
        data = serialize_event(ContextLoadEvent())
        data["timestamp"] = "yesterday"
        assert isinstance(parse_event(data).timestamp, datetime)

    @pytest.mark.parametrize(
        "data",
        [
            None,
            "ContextLoadEvent",
            {},
            {"outcome": "hit"},
            {"event_class": "SomethingElse"},
        ],
    )
    def test_invalid_input_returns_none(self, data):
        assert parse_event(data) is None

    def test_input_not_mutated(self):
        data = serialize_event(ContextLoadEvent())
        parse_event(data)
        assert "event_class" in data


class TestIsBatonEvent:
    def test_known_classes(self):
        for name in EVENT_CLASSES:
            assert is_baton_event({"event_class": name})

    def test_rejects_other_dicts(self):
        assert not is_baton_event({"event_class": "Other"})
        assert not is_baton_event([])
