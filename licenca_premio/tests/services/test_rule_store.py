"""Tests for override rule storage and Redis configuration."""

import json
from unittest.mock import MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from licenca_premio.infrastructure.redis_client import RedisConfig, create_redis_client
from licenca_premio.infrastructure.rule_store import (
    DEFAULT_RULES_KEY,
    InMemoryRuleStore,
    RedisRuleStore,
)
from licenca_premio.services.lotacao_normalizer import LotacaoNormalizer
from licenca_premio.utils.errors import RuleStoreError


@pytest.fixture
def mock_redis():
    """Create a mock Redis client."""
    return MagicMock()


# =============================================================================
# In-Memory Store Tests
# =============================================================================

class TestInMemoryRuleStore:
    """Test cases for the in-memory rule store."""

    def test_empty_by_default(self):
        assert InMemoryRuleStore().load() == {}

    def test_save_and_load(self):
        store = InMemoryRuleStore()
        store.save({"CEAC AJU": "CEAC ARACAJU"})

        assert store.load() == {"CEAC AJU": "CEAC ARACAJU"}

    def test_load_returns_a_copy(self):
        """Test that mutating loaded rules does not change the store."""
        store = InMemoryRuleStore({"A": "B"})
        rules = store.load()
        rules["C"] = "D"

        assert store.load() == {"A": "B"}


# =============================================================================
# Redis Store Tests
# =============================================================================

class TestRedisRuleStore:
    """Test cases for the Redis-backed rule store."""

    def test_load_reads_json_under_key(self, mock_redis):
        mock_redis.get.return_value = json.dumps({"CEAC AJU": "CEAC ARACAJU"})

        rules = RedisRuleStore(mock_redis).load()

        mock_redis.get.assert_called_once_with(DEFAULT_RULES_KEY)
        assert rules == {"CEAC AJU": "CEAC ARACAJU"}

    def test_load_missing_key(self, mock_redis):
        mock_redis.get.return_value = None

        assert RedisRuleStore(mock_redis).load() == {}

    def test_load_corrupt_payload_is_empty(self, mock_redis):
        """Test that unreadable state is treated as no rules."""
        mock_redis.get.return_value = "{not json"

        assert RedisRuleStore(mock_redis).load() == {}

    def test_load_non_object_payload_is_empty(self, mock_redis):
        mock_redis.get.return_value = json.dumps(["CEAC"])

        assert RedisRuleStore(mock_redis).load() == {}

    def test_load_connection_error_is_empty(self, mock_redis):
        mock_redis.get.side_effect = RedisConnectionError("connection refused")

        assert RedisRuleStore(mock_redis).load() == {}

    def test_save_writes_json(self, mock_redis):
        RedisRuleStore(mock_redis, key="rules").save({"CEAC AJU": "CEAC ARACAJU"})

        key, payload = mock_redis.set.call_args[0]
        assert key == "rules"
        assert json.loads(payload) == {"CEAC AJU": "CEAC ARACAJU"}

    def test_save_failure_raises(self, mock_redis):
        """Test that a failed write surfaces as RuleStoreError."""
        mock_redis.set.side_effect = RedisConnectionError("connection refused")

        with pytest.raises(RuleStoreError):
            RedisRuleStore(mock_redis).save({"A": "B"})

    def test_normalizer_uses_redis_rules(self, mock_redis):
        """Test that rules written by another process are picked up."""
        mock_redis.get.return_value = json.dumps({"CEAC AJU": "CEAC ARACAJU"})

        normalizer = LotacaoNormalizer(RedisRuleStore(mock_redis))

        assert normalizer.normalize("Ceac - Aju") == "CEAC ARACAJU"


# =============================================================================
# Redis Configuration Tests
# =============================================================================

class TestRedisConfig:
    """Test cases for Redis connection configuration."""

    def test_from_url(self):
        config = RedisConfig.from_url("rediss://:secret@cache.internal:6380/2")

        assert config.host == "cache.internal"
        assert config.port == 6380
        assert config.password == "secret"
        assert config.db == 2
        assert config.ssl is True

    def test_from_env_defaults(self, monkeypatch):
        for name in ("REDIS_URL", "REDIS_HOST", "REDIS_PORT", "REDIS_PASSWORD", "REDIS_DB", "REDIS_SSL"):
            monkeypatch.delenv(name, raising=False)

        config = RedisConfig.from_env()

        assert config.host == "localhost"
        assert config.port == 6379
        assert config.db == 0
        assert config.ssl is False

    def test_from_env_prefers_url(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://redis:6379/1")
        monkeypatch.setenv("REDIS_HOST", "ignored")

        config = RedisConfig.from_env()

        assert config.host == "redis"
        assert config.db == 1

    @patch("licenca_premio.infrastructure.redis_client.redis.Redis")
    def test_create_redis_client(self, mock_redis_cls):
        create_redis_client(RedisConfig(host="cache", port=6380))

        kwargs = mock_redis_cls.call_args.kwargs
        assert kwargs["host"] == "cache"
        assert kwargs["port"] == 6380
        assert kwargs["decode_responses"] is True
