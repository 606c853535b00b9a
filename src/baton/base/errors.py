"""Error Classification Framework - Context Distribution Errors

This module defines the exception hierarchy used throughout Baton. Every error
carries an :class:`ErrorSeverity` that tells callers (and the fallback
machinery) whether the condition is absorbed internally or surfaced to the
consumer.

Error Classification Levels:
    - **RECOVERABLE**: Local to a single producer lookup. The fallback resolver
      converts it into a degraded load result; consumers never see it.
    - **CRITICAL**: Conditions the caller can act on (stale publish, impossible
      budget, bad configuration). Always propagated.

Taxonomy:
    - :class:`StaleVersionError` - publish with a non-increasing version
    - :class:`BudgetExceededError` - critical fields alone exceed the budget
    - :class:`NotFoundError` - no full-detail document for a reference
    - :class:`IntegrityError` - a fetched context document fails its shape check
    - :class:`SummaryTooLongError` - summary overflow under the ``reject`` policy
    - :class:`ConfigurationError` - invalid or unreadable configuration

.. seealso::
   :mod:`baton.context.fallback` : Where recoverable errors are absorbed
"""

from enum import Enum
from typing import Any


class ErrorSeverity(Enum):
    """Severity levels deciding how an error travels through the loader.

    :param RECOVERABLE: Absorbed by the fallback resolver, reflected as ``degraded``
    :type RECOVERABLE: str
    :param CRITICAL: Surfaced to the caller of ``put``/``load``
    :type CRITICAL: str
    """

    RECOVERABLE = "recoverable"
    CRITICAL = "critical"


class BatonError(Exception):
    """Base exception for all Baton errors.

    Subclasses set :attr:`severity` and add structured attributes so handlers
    and event sinks can report the failure without parsing messages.
    """

    severity: ErrorSeverity = ErrorSeverity.CRITICAL

    def to_dict(self) -> dict[str, Any]:
        """Structured representation for logging and event payloads."""
        details = {
            key: value
            for key, value in vars(self).items()
            if not key.startswith("_") and isinstance(value, str | int | float | bool | type(None))
        }
        return {
            "error_type": type(self).__name__,
            "severity": self.severity.value,
            "message": str(self),
            **details,
        }


class ConfigurationError(BatonError):
    """Raised when configuration files are invalid or contain incompatible values."""


class ContextError(BatonError):
    """Base class for errors raised by the context distribution components."""


class StaleVersionError(ContextError):
    """A publish attempt with a version not strictly greater than the stored maximum.

    The store rejects the document and leaves its state unchanged.
    """

    def __init__(self, producer_id: str, version: int, current_version: int):
        self.producer_id = producer_id
        self.version = version
        self.current_version = current_version
        super().__init__(
            f"Stale publish for '{producer_id}': version {version} is not greater "
            f"than stored version {current_version}"
        )


class BudgetExceededError(ContextError):
    """Critical fields alone exceed the remaining budget.

    Never partially satisfied: the caller must raise the ceiling or request
    fewer producers.
    """

    def __init__(self, producer_id: str, required: int, available: int):
        self.producer_id = producer_id
        self.required = required
        self.available = available
        super().__init__(
            f"Critical fields of '{producer_id}' cost {required} but only "
            f"{available} remains in the budget"
        )


class NotFoundError(ContextError):
    """No full-detail document exists for the given reference."""

    severity = ErrorSeverity.RECOVERABLE

    def __init__(self, ref: str):
        self.ref = ref
        super().__init__(f"No full-detail document for reference '{ref}'")


class IntegrityError(ContextError):
    """A fetched context document failed its basic shape check."""

    severity = ErrorSeverity.RECOVERABLE

    def __init__(self, producer_id: str, reason: str):
        self.producer_id = producer_id
        self.reason = reason
        super().__init__(f"Context document for '{producer_id}' failed integrity check: {reason}")


class SummaryTooLongError(ContextError):
    """Summary exceeds ``context.max_summary_length`` under the ``reject`` policy."""

    def __init__(self, producer_id: str, length: int, limit: int):
        self.producer_id = producer_id
        self.length = length
        self.limit = limit
        super().__init__(
            f"Summary for '{producer_id}' has {length} characters, limit is {limit}"
        )
