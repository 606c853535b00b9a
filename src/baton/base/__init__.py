"""Base Module - Error taxonomy shared by all Baton components."""

from .errors import (
    BatonError,
    BudgetExceededError,
    ConfigurationError,
    ContextError,
    ErrorSeverity,
    IntegrityError,
    NotFoundError,
    StaleVersionError,
    SummaryTooLongError,
)

__all__ = [
    "BatonError",
    "BudgetExceededError",
    "ConfigurationError",
    "ContextError",
    "ErrorSeverity",
    "IntegrityError",
    "NotFoundError",
    "StaleVersionError",
    "SummaryTooLongError",
]
