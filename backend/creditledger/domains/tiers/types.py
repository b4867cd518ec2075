"""Tier domain types and defaults.

The rule table is data. Adding a tier means adding a ``TierRule``; the
resolver's control flow never changes.
"""

from dataclasses import dataclass
from typing import Iterable

from creditledger.core.config import TierRuleConfig
from creditledger.core.shared_models import Tier


@dataclass(frozen=True)
class TierRule:
    """Assign ``tier`` when ``match`` occurs anywhere in the product name."""

    match: str
    tier: Tier
    credit_limit: int


@dataclass(frozen=True)
class TierResolution:
    tier: Tier
    credit_limit: int


# Order matters: the first matching rule wins.
DEFAULT_TIER_RULES: tuple[TierRule, ...] = (
    TierRule(match="enterprise", tier=Tier.ENTERPRISE, credit_limit=10000),
    TierRule(match="premium", tier=Tier.PREMIUM, credit_limit=2000),
)

DEFAULT_RESOLUTION = TierResolution(tier=Tier.BASIC, credit_limit=500)


def rules_from_config(configs: Iterable[TierRuleConfig]) -> tuple[TierRule, ...]:
    """Convert settings rows into tier rules, preserving order."""
    return tuple(
        TierRule(match=c.match, tier=Tier(c.tier.lower()), credit_limit=c.credit_limit)
        for c in configs
    )
