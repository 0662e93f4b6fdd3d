"""Application configuration settings."""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Optional


@dataclass
class LeavePolicySettings:
    """Leave accrual policy."""

    # Days earned per full acquisition period (5-year cycle)
    days_per_period: int = 90


@dataclass
class UrgencySettings:
    """Urgency thresholds, in days."""

    critical_days: int = 7
    high_days: int = 30
    moderate_days: int = 90


@dataclass
class RetirementSettings:
    """Retirement rule constants, keyed by sex (F/M)."""

    base_year: int = 2025

    # By age
    minimum_age: Dict[str, float] = field(default_factory=lambda: {"F": 62, "M": 65})
    minimum_service_by_age: float = 15

    # By points (age + service)
    base_points: Dict[str, float] = field(default_factory=lambda: {"F": 92, "M": 102})
    max_points: Dict[str, float] = field(default_factory=lambda: {"F": 100, "M": 105})
    points_increment_per_year: float = 1
    points_per_year: float = 2

    # By progressive age
    base_progressive_age: Dict[str, float] = field(default_factory=lambda: {"F": 59, "M": 64})
    max_progressive_age: Dict[str, float] = field(default_factory=lambda: {"F": 62, "M": 65})
    progressive_age_increment_per_year: float = 0.5
    minimum_service_progressive: float = 30


@dataclass
class CacheSettings:
    """Result cache configuration."""

    ttl_seconds: int = 300
    enabled: bool = True


@dataclass
class StorageSettings:
    """Override-rule storage and data source configuration."""

    rules_key: str = "lotacaoNormalizationRules"
    redis_url: Optional[str] = None
    data_file: Optional[str] = None


@dataclass
class Settings:
    """Main application settings."""

    # Application info
    app_name: str = "Licença-Prêmio API"
    app_version: str = "1.0.0"
    debug: bool = False

    leave_policy: LeavePolicySettings = field(default_factory=LeavePolicySettings)
    urgency: UrgencySettings = field(default_factory=UrgencySettings)
    retirement: RetirementSettings = field(default_factory=RetirementSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables."""
        return cls(
            app_name=os.getenv("APP_NAME", "Licença-Prêmio API"),
            app_version=os.getenv("APP_VERSION", "1.0.0"),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            leave_policy=LeavePolicySettings(
                days_per_period=int(os.getenv("LP_DAYS_PER_PERIOD", "90")),
            ),
            urgency=UrgencySettings(
                critical_days=int(os.getenv("LP_URGENCY_CRITICAL_DAYS", "7")),
                high_days=int(os.getenv("LP_URGENCY_HIGH_DAYS", "30")),
                moderate_days=int(os.getenv("LP_URGENCY_MODERATE_DAYS", "90")),
            ),
            retirement=RetirementSettings(
                base_year=int(os.getenv("LP_RETIREMENT_BASE_YEAR", "2025")),
            ),
            cache=CacheSettings(
                ttl_seconds=int(os.getenv("LP_CACHE_TTL_SECONDS", "300")),
                enabled=os.getenv("LP_CACHE_ENABLED", "true").lower() == "true",
            ),
            storage=StorageSettings(
                rules_key=os.getenv("LP_RULES_KEY", "lotacaoNormalizationRules"),
                redis_url=os.getenv("REDIS_URL") or None,
                data_file=os.getenv("LICENCA_DATA_FILE") or None,
            ),
        )


# Singleton settings instance
_settings: Optional[Settings] = None


@lru_cache()
def get_settings() -> Settings:
    """Get application settings (cached)."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
    get_settings.cache_clear()
