"""Storage and caching infrastructure."""

from licenca_premio.infrastructure.redis_client import (
    RedisConfig,
    create_redis_client,
)

from licenca_premio.infrastructure.result_cache import (
    CacheMetrics,
    CachePrefix,
    CacheTTL,
    ResultCache,
)

from licenca_premio.infrastructure.rule_store import (
    DEFAULT_RULES_KEY,
    InMemoryRuleStore,
    RedisRuleStore,
    RuleStore,
)

__all__ = [
    # Redis
    "RedisConfig",
    "create_redis_client",
    # Result cache
    "CacheMetrics",
    "CachePrefix",
    "CacheTTL",
    "ResultCache",
    # Rule store
    "DEFAULT_RULES_KEY",
    "InMemoryRuleStore",
    "RedisRuleStore",
    "RuleStore",
]
