"""
Field Classification

Decides, for a (producer, consumer) pair, which fields of the producer's
context are critical (must be loaded in full or the load fails) and which are
optional (loaded only if budget remains).

Resolution order:
    1. An explicit :class:`ClassificationRule` registered for the pair
    2. The producer's own ``next_agent_needs[consumer_id]`` declaration
    3. The default: ``summary`` critical, ``key_findings`` and ``decisions`` optional

For (1) and (2) every other field of the document is optional. Rules can be
registered in code or declared in the ``classification.rules`` config list::

    classification:
      rules:
        - producer: prd_agent
          consumer: coder_agent
          critical: [summary, features]
          optional: [decisions]
"""

import threading
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from baton.base.errors import ConfigurationError
from baton.utils.config import get_config_value
from baton.utils.logger import get_logger

from .document import DECISIONS, KEY_FINDINGS, SUMMARY_FIELD, ContextDocument

logger = get_logger("classifier")

DEFAULT_CRITICAL = frozenset({SUMMARY_FIELD})
DEFAULT_OPTIONAL = frozenset({KEY_FINDINGS, DECISIONS})


class ClassificationRule(BaseModel):
    """Critical/optional split for one (producer, consumer) pair."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    producer_id: str = Field(min_length=1, alias="producer")
    consumer_id: str = Field(min_length=1, alias="consumer")
    critical: frozenset[str] = frozenset()
    optional: frozenset[str] = frozenset()

    @model_validator(mode="after")
    def _tiers_disjoint(self) -> "ClassificationRule":
        overlap = self.critical & self.optional
        if overlap:
            raise ValueError(f"fields cannot be both critical and optional: {sorted(overlap)}")
        return self

    @property
    def key(self) -> tuple[str, str]:
        return (self.producer_id, self.consumer_id)


class ClassificationRegistry:
    """Thread-safe mapping of (producer_id, consumer_id) to rules."""

    def __init__(self, rules: list[ClassificationRule] | None = None):
        self._rules: dict[tuple[str, str], ClassificationRule] = {}
        self._lock = threading.Lock()
        for rule in rules or []:
            self.register(rule)

    @classmethod
    def from_config(cls, rules: list[dict[str, Any]] | None = None) -> "ClassificationRegistry":
        """Build a registry from ``classification.rules``.

        Raises:
            ConfigurationError: If a rule entry is malformed
        """
        if rules is None:
            rules = get_config_value("classification.rules", []) or []
        if not isinstance(rules, list):
            raise ConfigurationError("classification.rules must be a list")

        registry = cls()
        for index, raw in enumerate(rules):
            try:
                registry.register(ClassificationRule.model_validate(raw))
            except ValidationError as e:
                raise ConfigurationError(f"Invalid classification rule #{index}: {e}") from e
        logger.debug(f"Loaded {len(registry)} classification rules from config")
        return registry

    def register(self, rule: ClassificationRule) -> None:
        """Add or replace the rule for the rule's pair."""
        with self._lock:
            replaced = rule.key in self._rules
            self._rules[rule.key] = rule
        if replaced:
            logger.debug(f"Replaced classification rule for {rule.producer_id} -> {rule.consumer_id}")

    def unregister(self, producer_id: str, consumer_id: str) -> bool:
        """Remove a rule; returns whether one existed."""
        with self._lock:
            return self._rules.pop((producer_id, consumer_id), None) is not None

    def rule_for(self, producer_id: str, consumer_id: str) -> ClassificationRule | None:
        with self._lock:
            return self._rules.get((producer_id, consumer_id))

    def __len__(self) -> int:
        with self._lock:
            return len(self._rules)


class FieldClassifier:
    """Splits a producer's fields into critical and optional tiers for a consumer.

    Results depend only on the registry contents and the document, so repeated
    calls without an intervening registration return the same sets.
    """

    def __init__(self, registry: ClassificationRegistry | None = None):
        self.registry = registry if registry is not None else ClassificationRegistry()

    def classify(
        self,
        producer_id: str,
        consumer_id: str,
        document: ContextDocument | None = None,
    ) -> tuple[frozenset[str], frozenset[str]]:
        """Return ``(critical, optional)`` field names for the pair.

        Args:
            producer_id: Agent whose context is being loaded
            consumer_id: Agent requesting the context
            document: Producer's current document, used for ``next_agent_needs``
                and for listing the remaining fields as optional

        Returns:
            Two disjoint frozensets of field names (bare, qualified or group names)
        """
        rule = self.registry.rule_for(producer_id, consumer_id)
        if rule is not None:
            return rule.critical, self._with_remaining(rule.critical, rule.optional, document)

        if document is not None and consumer_id in document.next_agent_needs:
            critical = frozenset(document.next_agent_needs[consumer_id])
            return critical, self._with_remaining(critical, frozenset(), document)

        return DEFAULT_CRITICAL, DEFAULT_OPTIONAL

    @staticmethod
    def _with_remaining(
        critical: frozenset[str],
        optional: frozenset[str],
        document: ContextDocument | None,
    ) -> frozenset[str]:
        if document is None:
            return optional
        resolved_critical, _ = document.resolve_fields(critical)
        remaining = {name for name in document.field_names() if name not in resolved_critical}
        return frozenset((optional | remaining) - critical)
