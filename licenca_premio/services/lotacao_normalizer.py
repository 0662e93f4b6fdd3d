"""Normalization of free-text lotação (organizational unit) names.

"CEAC ARACAJU", "CEAC - ARACAJU" and "CEAC_ARACAJU" are the same unit.
Names go through a fixed pipeline; operators can add override rules for
spellings the pipeline cannot reconcile on its own.
"""

import logging
import re
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

from licenca_premio.infrastructure.rule_store import InMemoryRuleStore, RuleStore
from licenca_premio.schemas.leave_records import NormalizationStats, RawLeaveRecord
from licenca_premio.utils.errors import ValidationError
from licenca_premio.utils.spreadsheet_parser import strip_accents

logger = logging.getLogger(__name__)


# Applied once, in order. Never iterated to a fixpoint.
COMMON_RULES: Sequence[Tuple[Pattern[str], str]] = (
    # Directional abbreviations
    (re.compile(r"\bN\b"), "NORTE"),
    (re.compile(r"\bS\b"), "SUL"),
    (re.compile(r"\bL\b"), "LESTE"),
    (re.compile(r"\bO\b"), "OESTE"),
    # Prepositions and conjunctions between words
    (re.compile(r"(?<= )(?:DA|DE|DO|DOS|DAS|E)(?= )"), ""),
)

_SEPARATORS = re.compile(r"[-_\s]+")
_TRAILING_PUNCTUATION = re.compile(r"[\s.,;:!?]+$")
_WHITESPACE = re.compile(r"\s+")


class LotacaoNormalizer:
    """
    Canonicalizes lotação names.

    One instance is built by the application and handed to every consumer;
    the override table lives in the injected ``RuleStore``.
    """

    def __init__(self, rule_store: Optional[RuleStore] = None):
        self.rule_store = rule_store or InMemoryRuleStore()
        self._rules: Dict[str, str] = {}
        self._canonical: Dict[str, str] = {}
        self._set_rules(self.rule_store.load())

    # =========================================================================
    # Normalization
    # =========================================================================

    def normalize(self, name: Optional[str]) -> str:
        """Return the canonical key for a lotação name ("" for blanks)."""
        if not name:
            return ""

        key = self._partial_normalize(name)

        override = self._lookup_override(key)
        if override:
            return override

        for pattern, replacement in COMMON_RULES:
            key = pattern.sub(replacement, key)
        key = _WHITESPACE.sub(" ", key).strip()

        return self._lookup_override(key) or key

    def _partial_normalize(self, name: str) -> str:
        text = strip_accents(str(name).strip()).upper()
        text = _SEPARATORS.sub(" ", text).strip()
        return _TRAILING_PUNCTUATION.sub("", text)

    def _lookup_override(self, key: str) -> Optional[str]:
        """
        Resolve ``key`` through the override table.

        Chained rules are followed to their last replacement. A key that is
        itself a replacement maps onto that replacement, so a normalized
        name is stable under another pass.
        """
        override = None
        seen = set()
        while key in self._rules and key not in seen:
            seen.add(key)
            override = self._rules[key]
            key = self._partial_normalize(override)

        if override is None:
            override = self._canonical.get(key)
        return override

    def normalize_records(self, records: Iterable[RawLeaveRecord]) -> List[RawLeaveRecord]:
        """Return copies of the records with ``department`` filled in."""
        return [
            record.model_copy(update={"department": self.normalize(record.department_name_raw) or None})
            for record in records
        ]

    # =========================================================================
    # Analysis
    # =========================================================================

    def analyze_duplicates(self, records: Iterable[RawLeaveRecord]) -> Dict[str, List[str]]:
        """
        Group raw spellings by normalized key.

        Only keys reached by more than one distinct spelling are returned,
        for operator review.
        """
        spellings: Dict[str, set] = defaultdict(set)

        for record in records:
            original = record.department_name_raw
            if not original:
                continue
            spellings[self.normalize(original)].add(original)

        return {
            normalized: sorted(originals)
            for normalized, originals in spellings.items()
            if len(originals) > 1
        }

    def get_stats(self, records: Iterable[RawLeaveRecord]) -> NormalizationStats:
        originals = set()
        normalized = set()

        for record in records:
            if record.department_name_raw:
                originals.add(record.department_name_raw)
                normalized.add(self.normalize(record.department_name_raw))

        removed = len(originals) - len(normalized)
        savings = round(removed / len(originals) * 100) if originals else 0

        return NormalizationStats(
            total=len(originals),
            unique=len(normalized),
            duplicates=removed,
            savings_percent=savings,
        )

    # =========================================================================
    # Override rules
    # =========================================================================

    def add_custom_rule(self, original: str, replacement: str) -> None:
        """Map every spelling of ``original`` onto ``replacement``."""
        key = self._partial_normalize(original or "")
        value = (replacement or "").strip().upper()
        if not key or not value:
            raise ValidationError(
                message="Both the original name and its replacement are required",
                details={"original": original, "replacement": replacement},
            )

        if self._creates_cycle(key, value):
            raise ValidationError(
                message="Rule would map the replacement back onto the original name",
                details={"original": original, "replacement": replacement},
            )

        rules = dict(self._rules)
        rules[key] = value
        self.rule_store.save(rules)
        self._set_rules(rules)
        logger.info(f"Added lotação rule {key!r} -> {value!r}")

    def remove_custom_rule(self, original: str) -> bool:
        """Remove a rule; returns False when no rule existed."""
        key = self._partial_normalize(original or "")
        if key not in self._rules:
            return False

        rules = dict(self._rules)
        del rules[key]
        self.rule_store.save(rules)
        self._set_rules(rules)
        logger.info(f"Removed lotação rule {key!r}")
        return True

    def get_custom_rules(self) -> Dict[str, str]:
        return dict(self._rules)

    def clear_custom_rules(self) -> None:
        self.rule_store.save({})
        self._set_rules({})

    def reload_rules(self) -> None:
        """Re-read the override table from the store."""
        self._set_rules(self.rule_store.load())

    def _set_rules(self, rules: Dict[str, str]) -> None:
        self._rules = dict(rules)
        self._canonical = {
            self._partial_normalize(replacement): replacement
            for replacement in self._rules.values()
        }

    def _creates_cycle(self, key: str, replacement: str) -> bool:
        target = self._partial_normalize(replacement)
        if target == key:
            return False

        seen = set()
        while target in self._rules and target not in seen:
            seen.add(target)
            target = self._partial_normalize(self._rules[target])
            if target == key:
                return True
        return False
