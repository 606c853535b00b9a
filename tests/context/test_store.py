"""Tests for the in-memory and file-backed context stores."""

import threading

import pytest

from baton.base.errors import IntegrityError, NotFoundError, StaleVersionError, SummaryTooLongError
from baton.context.document import FullDetailDocument
from baton.context.store import FileContextStore, InMemoryContextStore
from baton.events import ContextPublishedEvent
from tests.conftest import make_document

DETAIL = """# PRD

## Overview

Short overview.

## Scope

Everything in scope.
"""


@pytest.fixture(params=["memory", "file"])
def any_store(request, tmp_path, event_log):
    """Each publish rule runs against both backends."""
    if request.param == "memory":
        return InMemoryContextStore(event_log=event_log)
    return FileContextStore(tmp_path / "store", event_log=event_log)


# ===================================================================
# Publishing
# ===================================================================


class TestPublish:
    """Test monotonic versioning shared by every backend."""

    def test_put_then_get(self, any_store):
        doc = make_document(key_findings={"a": 1})
        any_store.put(doc)
        assert any_store.get("P1") == doc

    def test_get_unknown_producer(self, any_store):
        assert any_store.get("never") is None

    def test_versions_strictly_increase(self, any_store):
        for version in (1, 2, 5):
            any_store.put(make_document(version=version, summary=f"v{version}"))
            assert any_store.get("P1").version == version
        assert [d.version for d in any_store.history("P1")] == [1, 2, 5]

    def test_republish_same_version_rejected(self, any_store):
        """Republishing the current version fails and leaves the original in place."""
        original = make_document(summary="ok", key_findings={"a": 1, "b": 2})
        any_store.put(original)

        with pytest.raises(StaleVersionError) as exc_info:
            any_store.put(make_document(summary="changed"))

        assert exc_info.value.current_version == 1
        assert any_store.get("P1") == original
        assert len(any_store.history("P1")) == 1

    def test_older_version_rejected(self, any_store):
        any_store.put(make_document(version=3))
        with pytest.raises(StaleVersionError):
            any_store.put(make_document(version=2))
        assert any_store.get("P1").version == 3

    def test_min_version(self, any_store):
        any_store.put(make_document(version=2))
        assert any_store.get("P1", min_version=2).version == 2
        assert any_store.get("P1", min_version=3) is None

    def test_producers_are_independent(self, any_store):
        any_store.put(make_document(producer_id="P1", version=4))
        any_store.put(make_document(producer_id="P2", version=1))
        assert any_store.get("P2").version == 1

    def test_publish_events(self, any_store, event_log):
        any_store.put(make_document())
        with pytest.raises(StaleVersionError):
            any_store.put(make_document())

        accepted = [e.accepted for e in event_log.records(ContextPublishedEvent)]
        assert accepted == [True, False]

    def test_last_full_detail_ref(self, any_store):
        any_store.put(make_document(version=1, full_detail_ref="docs/v1.md"))
        any_store.put(make_document(version=2))
        assert any_store.last_full_detail_ref("P1") == "docs/v1.md"
        assert any_store.last_full_detail_ref("P2") is None


class TestConcurrentPublish:
    def test_racing_publishers_keep_versions_monotonic(self, store):
        errors = []

        def publish(version):
            try:
                store.put(make_document(version=version))
            except StaleVersionError as e:
                errors.append(e)

        threads = [threading.Thread(target=publish, args=(v,)) for v in range(1, 21)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        versions = [d.version for d in store.history("P1")]
        assert versions == sorted(versions)
        assert len(set(versions)) == len(versions)
        assert len(versions) + len(errors) == 20
        assert store.get("P1").version == 20


# ===================================================================
# Summary Bound
# ===================================================================


class TestSummaryBound:
    def test_truncate_policy(self, event_log):
        store = InMemoryContextStore(max_summary_length=10, summary_overflow="truncate", event_log=event_log)
        stored = store.put(make_document(summary="x" * 25))

        assert stored.summary == "x" * 10
        assert stored.summary_truncated is True
        assert store.get("P1").summary_truncated is True
        (event,) = event_log.records(ContextPublishedEvent)
        assert event.summary_truncated is True

    def test_reject_policy(self):
        store = InMemoryContextStore(max_summary_length=10, summary_overflow="reject")
        with pytest.raises(SummaryTooLongError) as exc_info:
            store.put(make_document(summary="x" * 25))
        assert exc_info.value.length == 25
        assert store.get("P1") is None

    def test_summary_at_limit_untouched(self):
        store = InMemoryContextStore(max_summary_length=10)
        stored = store.put(make_document(summary="x" * 10))
        assert stored.summary_truncated is False

    def test_default_limit_from_config(self):
        assert InMemoryContextStore().max_summary_length == 2000

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            InMemoryContextStore(summary_overflow="ignore")


# ===================================================================
# Full Detail
# ===================================================================


class TestFullDetail:
    def test_registered_document(self, any_store):
        any_store.put_full_detail(FullDetailDocument(ref="docs/prd.md", content=DETAIL))
        assert any_store.get_full_detail("docs/prd.md").content == DETAIL

    def test_anchor_narrows_to_section(self, any_store):
        any_store.put_full_detail(FullDetailDocument(ref="docs/prd.md", content=DETAIL))
        detail = any_store.get_full_detail("docs/prd.md#scope")
        assert detail.ref == "docs/prd.md#scope"
        assert detail.content == "## Scope\n\nEverything in scope."

    def test_missing_document(self, any_store):
        with pytest.raises(NotFoundError):
            any_store.get_full_detail("docs/missing.md")

    def test_missing_anchor(self, any_store):
        any_store.put_full_detail(FullDetailDocument(ref="docs/prd.md", content=DETAIL))
        with pytest.raises(NotFoundError):
            any_store.get_full_detail("docs/prd.md#nowhere")


# ===================================================================
# File Store Specifics
# ===================================================================


class TestFileContextStore:
    def test_layout(self, tmp_path):
        store = FileContextStore(tmp_path)
        store.put(make_document(version=1))
        store.put(make_document(version=2))
        assert sorted(p.name for p in (tmp_path / "P1").iterdir()) == ["v1.json", "v2.json"]

    def test_persists_across_instances(self, tmp_path):
        FileContextStore(tmp_path).put(make_document(version=3, key_findings={"a": ["x"]}))
        reopened = FileContextStore(tmp_path)
        assert reopened.get("P1").key_findings["a"].to_plain() == ["x"]
        with pytest.raises(StaleVersionError):
            reopened.put(make_document(version=3))

    def test_corrupt_file_raises_integrity_error(self, tmp_path):
        store = FileContextStore(tmp_path)
        store.put(make_document(version=1, full_detail_ref="docs/prd.md"))
        (tmp_path / "P1" / "v2.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(IntegrityError):
            store.get("P1")
        # Older readable versions still provide the reference
        assert store.last_full_detail_ref("P1") == "docs/prd.md"

    def test_invalid_document_raises_integrity_error(self, tmp_path):
        (tmp_path / "P1").mkdir()
        (tmp_path / "P1" / "v1.json").write_text('{"producer_id": "P1", "version": 1}', encoding="utf-8")
        with pytest.raises(IntegrityError):
            FileContextStore(tmp_path).get("P1")

    def test_unrelated_files_ignored(self, tmp_path):
        store = FileContextStore(tmp_path)
        store.put(make_document(version=1))
        (tmp_path / "P1" / "notes.txt").write_text("scratch", encoding="utf-8")
        assert store.get("P1").version == 1

    def test_reference_outside_root(self, tmp_path):
        store = FileContextStore(tmp_path / "root")
        (tmp_path / "secret.md").write_text("# secret", encoding="utf-8")
        with pytest.raises(NotFoundError):
            store.get_full_detail("../secret.md")

    def test_producer_id_with_separator_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            FileContextStore(tmp_path).put(make_document(producer_id="../escape"))

    def test_producer_id_with_separator_reads_as_unpublished(self, tmp_path):
        store = FileContextStore(tmp_path)
        assert store.get("team/P1") is None
        assert store.history("team\\P1") == []
        assert store.last_full_detail_ref("..") is None

    def test_undecodable_version_file_raises_integrity_error(self, tmp_path):
        store = FileContextStore(tmp_path)
        store.put(make_document(version=1))
        (tmp_path / "P1" / "v2.json").write_bytes(b"\xff\xfe{bad")

        with pytest.raises(IntegrityError):
            store.get("P1")

    def test_undecodable_full_detail_not_found(self, tmp_path):
        store = FileContextStore(tmp_path)
        (tmp_path / "docs").mkdir()
        (tmp_path / "docs" / "prd.md").write_bytes(b"# PRD\n\n\xff\n")

        with pytest.raises(NotFoundError):
            store.get_full_detail("docs/prd.md")
