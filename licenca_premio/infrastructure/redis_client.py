"""
Redis Client Configuration

Builds the Redis connection used to persist lotação override rules.
"""

import logging
import os
from typing import Optional
from urllib.parse import urlparse

import redis
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class RedisConfig(BaseModel):
    """Redis connection configuration."""

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: Optional[str] = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")
    ssl: bool = Field(default=False, description="Enable SSL/TLS")
    socket_timeout: float = Field(default=5.0, description="Socket timeout in seconds")
    socket_connect_timeout: float = Field(default=5.0, description="Connect timeout")

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisConfig":
        """Build a configuration from a redis:// or rediss:// URL."""
        parsed = urlparse(redis_url)
        return cls(
            host=parsed.hostname or "localhost",
            port=parsed.port or 6379,
            password=parsed.password,
            db=int(parsed.path.lstrip("/") or 0),
            ssl=parsed.scheme == "rediss",
        )

    @classmethod
    def from_env(cls) -> "RedisConfig":
        """Load Redis configuration from environment variables."""
        redis_url = os.environ.get("REDIS_URL")
        if redis_url:
            return cls.from_url(redis_url)

        return cls(
            host=os.environ.get("REDIS_HOST", "localhost"),
            port=int(os.environ.get("REDIS_PORT", "6379")),
            password=os.environ.get("REDIS_PASSWORD"),
            db=int(os.environ.get("REDIS_DB", "0")),
            ssl=os.environ.get("REDIS_SSL", "").lower() == "true",
        )


def create_redis_client(config: Optional[RedisConfig] = None) -> "redis.Redis":
    """Create a Redis client that returns decoded strings."""
    config = config or RedisConfig.from_env()
    logger.info(f"Connecting to Redis at {config.host}:{config.port}/{config.db}")

    return redis.Redis(
        host=config.host,
        port=config.port,
        password=config.password,
        db=config.db,
        ssl=config.ssl,
        socket_timeout=config.socket_timeout,
        socket_connect_timeout=config.socket_connect_timeout,
        decode_responses=True,
    )
