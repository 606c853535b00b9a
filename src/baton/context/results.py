"""
Load Result Types

The bundle returned to a consumer for one producer. Consumers must treat any
``degraded`` result as informationally incomplete and carry on with what they
received; nothing here blocks on a producer that has not published.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Source(str, Enum):
    """Where the fields of a load result came from."""

    STRUCTURED = "structured"
    FULL_DETAIL = "full-detail"
    ABSENT = "absent"


class LoadResult(BaseModel):
    """Fields loaded for one producer under the shared budget.

    Attributes:
        producer_id: Producer the fields came from
        source: structured, full-detail or absent
        fields_included: Critical plus chosen optional fields, in declaration order
        fields_omitted: Fields left out (optional fields that did not fit, or
            requested fields the document does not have)
        degraded: True when anything was omitted or the structured path was not used
        content: Included field name -> plain JSON-compatible value
        cost: Budget units charged
        version: Version of the context document used, if any
        warnings: Human-readable notes about degradation
        cache_hit: Whether the structured lookup came from the read cache
    """

    model_config = ConfigDict(use_enum_values=False)

    producer_id: str
    source: Source
    fields_included: list[str] = Field(default_factory=list)
    fields_omitted: list[str] = Field(default_factory=list)
    degraded: bool = False
    content: dict[str, Any] = Field(default_factory=dict)
    cost: int = 0
    version: int | None = None
    warnings: list[str] = Field(default_factory=list)
    cache_hit: bool = False

    @classmethod
    def absent(cls, producer_id: str, reason: str) -> "LoadResult":
        """Terminal result when neither structured nor full-detail data is available."""
        return cls(
            producer_id=producer_id,
            source=Source.ABSENT,
            degraded=True,
            warnings=[reason],
        )

    @property
    def outcome(self) -> str:
        """Event-record outcome: hit, partial, fallback or miss."""
        if self.source is Source.ABSENT:
            return "miss"
        if self.source is Source.FULL_DETAIL:
            return "fallback"
        return "partial" if self.degraded else "hit"

    def get(self, name: str, default: Any = None) -> Any:
        """Value of an included field."""
        return self.content.get(name, default)
