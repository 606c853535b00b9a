"""Context distribution between collaborating agents.

Producers publish a compact :class:`ContextDocument` to a :class:`ContextStore`;
consumers call :meth:`ContextLoader.load` to receive only the fields they need
under a shared :class:`Budget`, degrading to the full-detail document (or to
nothing) when structured context is missing or malformed.
"""

from .budget import (
    Allocation,
    Budget,
    BudgetAllocator,
    ByteSizeCost,
    CostFunction,
    TokenEstimateCost,
    cost_function_from_settings,
    declaration_order,
)
from .classifier import ClassificationRegistry, ClassificationRule, FieldClassifier
from .document import (
    ContextDocument,
    Decision,
    FieldValue,
    FullDetailDocument,
    ValueKind,
    canonical_json,
)
from .fallback import FallbackResolver, Lookup, ResolverState
from .loader import ContextLoader
from .results import LoadResult, Source
from .store import ContextStore, FileContextStore, InMemoryContextStore

__all__ = [
    # Documents
    "ContextDocument",
    "FullDetailDocument",
    "FieldValue",
    "Decision",
    "ValueKind",
    "canonical_json",
    # Store
    "ContextStore",
    "InMemoryContextStore",
    "FileContextStore",
    # Classification
    "ClassificationRule",
    "ClassificationRegistry",
    "FieldClassifier",
    # Budget
    "Budget",
    "BudgetAllocator",
    "Allocation",
    "CostFunction",
    "TokenEstimateCost",
    "ByteSizeCost",
    "cost_function_from_settings",
    "declaration_order",
    # Resolution
    "FallbackResolver",
    "ResolverState",
    "Lookup",
    "LoadResult",
    "Source",
    "ContextLoader",
]
