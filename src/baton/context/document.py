"""
Context Document Models

Pydantic models for the structured summary an agent publishes after a run,
and for the full-detail document it summarizes.

Field values are an explicitly typed union (:class:`FieldValue`) rather than
arbitrary objects, so every field has a canonical JSON form and therefore a
deterministic cost.

Field addressing:
    A document exposes an ordered *field universe*: ``summary``, then every
    ``key_findings`` entry, then every ``decisions`` entry. Names may refer to
    ``summary``, a group (``key_findings`` / ``decisions``, expanding to all of
    its entries), an entry by bare name (``auth_flow``) or an entry by
    qualified name (``decisions.database``). Entry names are unique across the
    two groups so a bare name is never ambiguous.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SUMMARY_FIELD = "summary"
KEY_FINDINGS = "key_findings"
DECISIONS = "decisions"
GROUP_NAMES = (KEY_FINDINGS, DECISIONS)
RESERVED_NAMES = (SUMMARY_FIELD, *GROUP_NAMES)


def canonical_json(value: Any) -> str:
    """Compact, key-sorted JSON used for cost computation."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class ValueKind(str, Enum):
    """Declared kind of a field value."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING_LIST = "string_list"
    MAPPING = "mapping"
    NULL = "null"


def infer_kind(value: Any) -> ValueKind:
    """Infer the :class:`ValueKind` of a raw Python value.

    Raises:
        ValueError: If the value has no supported kind
    """
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, int | float):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, list | tuple):
        if all(isinstance(item, str) for item in value):
            return ValueKind.STRING_LIST
        raise ValueError("list values must contain only strings")
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValueError("mapping keys must be strings")
            infer_kind(item)
        return ValueKind.MAPPING
    raise ValueError(f"unsupported field value type: {type(value).__name__}")


def _is_serialized_field_value(raw: Any) -> bool:
    return (
        isinstance(raw, dict)
        and set(raw) == {"kind", "value"}
        and raw["kind"] in {kind.value for kind in ValueKind}
    )


class FieldValue(BaseModel):
    """A typed opaque value inside ``key_findings`` or a decision.

    Examples:
        >>> FieldValue.of(["jwt", "oauth"]).kind
        <ValueKind.STRING_LIST: 'string_list'>
        >>> FieldValue.of({"p95_ms": 120}).to_plain()
        {'p95_ms': 120}
    """

    model_config = ConfigDict(frozen=True)

    kind: ValueKind
    value: Any = None

    @model_validator(mode="after")
    def _value_matches_kind(self) -> "FieldValue":
        actual = infer_kind(self.value)
        if actual != self.kind:
            raise ValueError(f"value of kind '{actual.value}' declared as '{self.kind.value}'")
        return self

    @classmethod
    def of(cls, raw: Any) -> "FieldValue":
        """Wrap a raw value, accepting already-typed or serialized values."""
        if isinstance(raw, FieldValue):
            return raw
        if _is_serialized_field_value(raw):
            return cls.model_validate(raw)
        if isinstance(raw, tuple):
            raw = list(raw)
        return cls(kind=infer_kind(raw), value=raw)

    def to_plain(self) -> Any:
        return self.value

    def canonical_json(self) -> str:
        return canonical_json(self.value)


class Decision(BaseModel):
    """A named decision: the chosen value plus rationale text."""

    model_config = ConfigDict(frozen=True)

    value: FieldValue
    rationale: str = ""

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, raw: Any) -> FieldValue:
        return FieldValue.of(raw)

    @classmethod
    def of(cls, raw: Any) -> "Decision":
        """Accept a Decision, a ``{"value": ..., "rationale": ...}`` dict, or a bare value."""
        if isinstance(raw, Decision):
            return raw
        if isinstance(raw, dict) and "value" in raw and set(raw) <= {"value", "rationale"}:
            return cls(value=raw["value"], rationale=raw.get("rationale", ""))
        return cls(value=raw)

    def to_plain(self) -> dict[str, Any]:
        return {"value": self.value.to_plain(), "rationale": self.rationale}


class ContextDocument(BaseModel):
    """Structured, versioned summary one agent publishes for others to consume.

    Immutable once constructed; corrections are published as a new version.

    Required: ``producer_id``, ``version``, ``summary``. Everything else is optional.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    producer_id: str = Field(min_length=1, description="Identifier of the originating agent")
    version: int = Field(ge=1, description="Strictly increasing per producer")
    summary: str = Field(description="Short free-text synopsis")
    key_findings: dict[str, FieldValue] = Field(default_factory=dict)
    decisions: dict[str, Decision] = Field(default_factory=dict)
    next_agent_needs: dict[str, list[str]] = Field(default_factory=dict)
    full_detail_ref: str | None = None
    summary_truncated: bool = False
    published_at: datetime = Field(default_factory=datetime.now)

    @field_validator("summary")
    @classmethod
    def _summary_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("summary must not be empty")
        return value

    @field_validator("key_findings", mode="before")
    @classmethod
    def _coerce_findings(cls, raw: Any) -> Any:
        if isinstance(raw, dict):
            return {name: FieldValue.of(value) for name, value in raw.items()}
        return raw

    @field_validator("decisions", mode="before")
    @classmethod
    def _coerce_decisions(cls, raw: Any) -> Any:
        if isinstance(raw, dict):
            return {name: Decision.of(value) for name, value in raw.items()}
        return raw

    @field_validator("next_agent_needs", mode="before")
    @classmethod
    def _coerce_needs(cls, raw: Any) -> Any:
        # Sets are convenient for producers but have no stable order
        if isinstance(raw, dict):
            return {
                consumer: sorted(fields) if isinstance(fields, set | frozenset) else fields
                for consumer, fields in raw.items()
            }
        return raw

    @model_validator(mode="after")
    def _entry_names_unique(self) -> "ContextDocument":
        for name in (*self.key_findings, *self.decisions):
            if name in RESERVED_NAMES or "." in name:
                raise ValueError(f"'{name}' cannot be used as a field entry name")
        shared = set(self.key_findings) & set(self.decisions)
        if shared:
            raise ValueError(f"entry names shared by key_findings and decisions: {sorted(shared)}")
        return self

    # ------------------------------------------------------------------
    # Field addressing
    # ------------------------------------------------------------------

    def field_names(self) -> list[str]:
        """Field universe in declaration order."""
        return [SUMMARY_FIELD, *self.key_findings, *self.decisions]

    def _entry_name(self, name: str) -> str | None:
        """Canonical (bare) name for a single-field reference, or None if unknown."""
        if name == SUMMARY_FIELD:
            return SUMMARY_FIELD
        group, _, entry = name.partition(".")
        if entry:
            if group == KEY_FINDINGS and entry in self.key_findings:
                return entry
            if group == DECISIONS and entry in self.decisions:
                return entry
            return None
        if name in self.key_findings or name in self.decisions:
            return name
        return None

    def resolve_fields(self, names: list[str] | set[str] | tuple[str, ...]) -> tuple[list[str], list[str]]:
        """Expand and canonicalize field references.

        Returns:
            ``(resolved, unknown)``: resolved names in declaration order and the
            references that address nothing in this document (sorted).
        """
        wanted: set[str] = set()
        unknown: set[str] = set()
        for name in names:
            if name == KEY_FINDINGS:
                wanted.update(self.key_findings)
            elif name == DECISIONS:
                wanted.update(self.decisions)
            else:
                entry = self._entry_name(name)
                if entry is None:
                    unknown.add(name)
                else:
                    wanted.add(entry)
        resolved = [name for name in self.field_names() if name in wanted]
        return resolved, sorted(unknown)

    def field_payload(self, name: str) -> Any:
        """JSON-compatible value of a resolved field (used for costing and results)."""
        entry = self._entry_name(name)
        if entry == SUMMARY_FIELD:
            return self.summary
        if entry in self.key_findings:
            return self.key_findings[entry].to_plain()
        if entry in self.decisions:
            return self.decisions[entry].to_plain()
        raise KeyError(name)

    def full_payload(self) -> dict[str, Any]:
        """Every field of the universe, for measuring what a full load would cost."""
        return {name: self.field_payload(name) for name in self.field_names()}


class FullDetailDocument(BaseModel):
    """The complete underlying document a context document summarizes."""

    model_config = ConfigDict(frozen=True)

    ref: str = Field(min_length=1)
    content: str
    title: str | None = None
