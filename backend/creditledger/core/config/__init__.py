"""Configuration module for the creditledger backend.

Usage:
    from creditledger.core.config import settings, Environment

    if settings.ENVIRONMENT == Environment.PRD:
        ...
"""

from creditledger.core.config.enums import Environment
from creditledger.core.config.settings import DEFAULT_TIER_RULES, Settings, TierRuleConfig

__all__ = [
    "DEFAULT_TIER_RULES",
    "Environment",
    "Settings",
    "TierRuleConfig",
    "settings",
]

# Singleton settings instance
settings = Settings()
