"""
Context Store

Versioned storage of published context documents and of the full-detail
documents they summarize.

Publishing is append-only: every accepted ``put`` adds a new version, and a
version that is not strictly greater than the stored maximum is rejected with
:class:`~baton.base.errors.StaleVersionError` without touching stored state.
Writes for one producer are serialized by a per-producer lock; writes for
distinct producers proceed in parallel.

Two backends share the same publish rules:

- :class:`InMemoryContextStore` for a single process
- :class:`FileContextStore` persisting one JSON file per version
  (``<root>/<producer_id>/v<version>.json``), full-detail references resolved
  as paths under ``root``
"""

import re
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError

from baton.base.errors import IntegrityError, NotFoundError, StaleVersionError, SummaryTooLongError
from baton.events.log import EventLog
from baton.events.types import ContextPublishedEvent
from baton.utils.config import get_context_settings
from baton.utils.logger import get_logger

from .document import ContextDocument, FullDetailDocument
from .extraction import extract_section, split_reference

logger = get_logger("store")

VERSION_FILE_PATTERN = re.compile(r"^v(\d+)\.json$")


class ContextStore(ABC):
    """Base class holding the publish rules shared by every backend.

    Subclasses provide storage primitives; :meth:`put` enforces monotonic
    versions and the summary bound for all of them.
    """

    def __init__(
        self,
        max_summary_length: int | None = None,
        summary_overflow: str | None = None,
        event_log: EventLog | None = None,
    ):
        settings = get_context_settings()
        self.max_summary_length = (
            max_summary_length if max_summary_length is not None else settings["max_summary_length"]
        )
        self.summary_overflow = summary_overflow or settings["summary_overflow"]
        if self.summary_overflow not in ("truncate", "reject"):
            raise ValueError(f"Unknown summary overflow policy: {self.summary_overflow}")
        self.event_log = event_log

        self._producer_locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _producer_lock(self, producer_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._producer_locks.setdefault(producer_id, threading.Lock())
        with lock:
            yield

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def put(self, document: ContextDocument) -> ContextDocument:
        """Publish a new version of a producer's context.

        Returns:
            The stored document (a truncated copy if the summary overflowed)

        Raises:
            StaleVersionError: If ``document.version`` is not greater than the stored maximum
            SummaryTooLongError: If the summary overflows under the ``reject`` policy
        """
        document = self._bound_summary(document)

        with self._producer_lock(document.producer_id):
            current = self._latest_version(document.producer_id)
            if current is not None and document.version <= current:
                self._record_publish(document, accepted=False)
                raise StaleVersionError(document.producer_id, document.version, current)
            self._write(document)

        logger.info(f"Published {document.producer_id} v{document.version}")
        self._record_publish(document, accepted=True)
        return document

    def _bound_summary(self, document: ContextDocument) -> ContextDocument:
        length = len(document.summary)
        if length <= self.max_summary_length:
            return document
        if self.summary_overflow == "reject":
            self._record_publish(document, accepted=False)
            raise SummaryTooLongError(document.producer_id, length, self.max_summary_length)
        logger.warning(
            f"Summary of {document.producer_id} v{document.version} truncated "
            f"from {length} to {self.max_summary_length} characters"
        )
        return document.model_copy(
            update={"summary": document.summary[: self.max_summary_length], "summary_truncated": True}
        )

    def _record_publish(self, document: ContextDocument, accepted: bool) -> None:
        if self.event_log is None:
            return
        self.event_log.append(
            ContextPublishedEvent(
                component="store",
                producer_id=document.producer_id,
                version=document.version,
                accepted=accepted,
                summary_truncated=document.summary_truncated,
            )
        )

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def get(self, producer_id: str, min_version: int | None = None) -> ContextDocument | None:
        """Latest document for a producer.

        Returns None if the producer never published, or if ``min_version`` is
        given and the latest stored version is older.

        Raises:
            IntegrityError: If the stored document cannot be read back
        """
        document = self._read_latest(producer_id)
        if document is None:
            return None
        if min_version is not None and document.version < min_version:
            logger.debug(f"{producer_id} v{document.version} is older than requested v{min_version}")
            return None
        return document

    def get_full_detail(self, ref: str) -> FullDetailDocument:
        """Resolve a full-detail reference, narrowing to ``#anchor`` sections.

        Raises:
            NotFoundError: If no document (or no matching section) exists
        """
        detail = self._read_full_detail(ref)
        if detail is not None:
            return detail

        path, anchor = split_reference(ref)
        detail = self._read_full_detail(path) if anchor else None
        if detail is None:
            raise NotFoundError(ref)

        section = extract_section(detail.content, anchor)
        if section is None:
            raise NotFoundError(ref)
        return FullDetailDocument(ref=ref, content=section, title=detail.title)

    def last_full_detail_ref(self, producer_id: str) -> str | None:
        """Most recent non-null ``full_detail_ref`` the producer ever published."""
        for document in reversed(self.history(producer_id)):
            if document.full_detail_ref:
                return document.full_detail_ref
        return None

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def _latest_version(self, producer_id: str) -> int | None:
        """Highest stored version, or None. Called with the producer lock held."""

    @abstractmethod
    def _write(self, document: ContextDocument) -> None:
        """Persist an accepted document. Called with the producer lock held."""

    @abstractmethod
    def _read_latest(self, producer_id: str) -> ContextDocument | None: ...

    @abstractmethod
    def _read_full_detail(self, ref: str) -> FullDetailDocument | None: ...

    @abstractmethod
    def history(self, producer_id: str) -> list[ContextDocument]:
        """Every stored version, oldest first."""

    @abstractmethod
    def put_full_detail(self, detail: FullDetailDocument) -> None:
        """Register a full-detail document under ``detail.ref``."""


class InMemoryContextStore(ContextStore):
    """Process-local store backed by dictionaries."""

    def __init__(
        self,
        max_summary_length: int | None = None,
        summary_overflow: str | None = None,
        event_log: EventLog | None = None,
    ):
        super().__init__(max_summary_length, summary_overflow, event_log)
        self._versions: dict[str, list[ContextDocument]] = {}
        self._full_details: dict[str, FullDetailDocument] = {}
        self._read_lock = threading.Lock()

    def _latest_version(self, producer_id: str) -> int | None:
        with self._read_lock:
            versions = self._versions.get(producer_id)
            return versions[-1].version if versions else None

    def _write(self, document: ContextDocument) -> None:
        with self._read_lock:
            self._versions.setdefault(document.producer_id, []).append(document)

    def _read_latest(self, producer_id: str) -> ContextDocument | None:
        with self._read_lock:
            versions = self._versions.get(producer_id)
            return versions[-1] if versions else None

    def _read_full_detail(self, ref: str) -> FullDetailDocument | None:
        with self._read_lock:
            return self._full_details.get(ref)

    def history(self, producer_id: str) -> list[ContextDocument]:
        with self._read_lock:
            return list(self._versions.get(producer_id, []))

    def put_full_detail(self, detail: FullDetailDocument) -> None:
        with self._read_lock:
            self._full_details[detail.ref] = detail


class FileContextStore(ContextStore):
    """Directory-backed store.

    Layout::

        <root>/
          prd_agent/
            v1.json
            v2.json
          docs/prd.md          # full-detail document, ref "docs/prd.md"

    A version file that is not valid JSON, or not a valid context document,
    raises :class:`~baton.base.errors.IntegrityError` when read.
    """

    def __init__(
        self,
        root: str | Path,
        max_summary_length: int | None = None,
        summary_overflow: str | None = None,
        event_log: EventLog | None = None,
    ):
        super().__init__(max_summary_length, summary_overflow, event_log)
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _is_directory_name(producer_id: str) -> bool:
        return not ("/" in producer_id or "\\" in producer_id or producer_id in ("", ".", ".."))

    def _producer_dir(self, producer_id: str) -> Path:
        if not self._is_directory_name(producer_id):
            raise ValueError(f"Producer id '{producer_id}' cannot be used as a directory name")
        return self.root / producer_id

    def _version_files(self, producer_id: str) -> list[tuple[int, Path]]:
        # Such ids can never be published here, so reads see nothing
        if not self._is_directory_name(producer_id):
            return []
        directory = self._producer_dir(producer_id)
        if not directory.is_dir():
            return []
        found = []
        for path in directory.iterdir():
            match = VERSION_FILE_PATTERN.match(path.name)
            if match:
                found.append((int(match.group(1)), path))
        return sorted(found)

    def _load(self, producer_id: str, path: Path) -> ContextDocument:
        try:
            return ContextDocument.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            raise IntegrityError(producer_id, f"{path.name}: {e}") from e

    def _latest_version(self, producer_id: str) -> int | None:
        files = self._version_files(producer_id)
        return files[-1][0] if files else None

    def _write(self, document: ContextDocument) -> None:
        directory = self._producer_dir(document.producer_id)
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / f"v{document.version}.json"
        temp = target.with_suffix(".json.tmp")
        temp.write_text(document.model_dump_json(indent=2), encoding="utf-8")
        temp.replace(target)

    def _read_latest(self, producer_id: str) -> ContextDocument | None:
        files = self._version_files(producer_id)
        if not files:
            return None
        return self._load(producer_id, files[-1][1])

    def history(self, producer_id: str) -> list[ContextDocument]:
        return [self._load(producer_id, path) for _, path in self._version_files(producer_id)]

    def last_full_detail_ref(self, producer_id: str) -> str | None:
        # Unreadable versions are skipped so a corrupt latest file still leaves older refs usable
        for _, path in reversed(self._version_files(producer_id)):
            try:
                document = self._load(producer_id, path)
            except IntegrityError as e:
                logger.debug(str(e))
                continue
            if document.full_detail_ref:
                return document.full_detail_ref
        return None

    def _detail_path(self, ref: str) -> Path | None:
        path = (self.root / ref).resolve()
        if not path.is_relative_to(self.root.resolve()):
            logger.warning(f"Full-detail reference escapes store root: {ref}")
            return None
        return path

    def _read_full_detail(self, ref: str) -> FullDetailDocument | None:
        path = self._detail_path(ref)
        if path is None or not path.is_file():
            return None
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Unreadable full-detail document {ref}: {e}")
            return None
        return FullDetailDocument(ref=ref, content=content)

    def put_full_detail(self, detail: FullDetailDocument) -> None:
        path = self._detail_path(split_reference(detail.ref)[0])
        if path is None:
            raise ValueError(f"Full-detail reference outside store root: {detail.ref}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(detail.content, encoding="utf-8")
