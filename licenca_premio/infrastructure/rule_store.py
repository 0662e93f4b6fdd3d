"""
Persistence of lotação override rules.

Rules are a flat ``{partially_normalized_name: replacement}`` mapping
stored as JSON under a single key.
"""

import json
import logging
from typing import Any, Dict, Optional, Protocol

from redis.exceptions import RedisError

from licenca_premio.utils.errors import RuleStoreError

logger = logging.getLogger(__name__)

DEFAULT_RULES_KEY = "lotacaoNormalizationRules"


class RuleStore(Protocol):
    """Key-value backed storage for the override table."""

    def load(self) -> Dict[str, str]:
        ...

    def save(self, rules: Dict[str, str]) -> None:
        ...


def _coerce_rules(data: Any) -> Dict[str, str]:
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return {str(key): str(value) for key, value in data.items()}


class InMemoryRuleStore:
    """Rule store kept in process memory, serialized like the Redis one."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._payload = json.dumps(initial or {})

    def load(self) -> Dict[str, str]:
        return _coerce_rules(json.loads(self._payload))

    def save(self, rules: Dict[str, str]) -> None:
        self._payload = json.dumps(rules, ensure_ascii=False)


class RedisRuleStore:
    """Rule store persisted under one Redis key."""

    def __init__(self, client: Any, key: str = DEFAULT_RULES_KEY):
        self.client = client
        self.key = key

    def load(self) -> Dict[str, str]:
        """Load rules; unreadable state is logged and treated as empty."""
        try:
            data = self.client.get(self.key)
        except RedisError as e:
            logger.error(f"Could not load normalization rules from {self.key}: {str(e)}")
            return {}

        if not data:
            return {}

        try:
            return _coerce_rules(json.loads(data))
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            logger.error(f"Ignoring corrupt normalization rules at {self.key}: {str(e)}")
            return {}

    def save(self, rules: Dict[str, str]) -> None:
        try:
            self.client.set(self.key, json.dumps(rules, ensure_ascii=False))
        except RedisError as e:
            logger.error(f"Could not save normalization rules to {self.key}: {str(e)}")
            raise RuleStoreError(details={"key": self.key, "reason": str(e)}) from e
