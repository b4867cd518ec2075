"""Substring-based tier policy."""

from typing import Iterable, Optional

from creditledger.core.shared_models import Tier
from creditledger.domains.tiers.protocols import TierPolicyProtocol
from creditledger.domains.tiers.types import (
    DEFAULT_RESOLUTION,
    DEFAULT_TIER_RULES,
    TierResolution,
    TierRule,
)


class SubstringTierPolicy(TierPolicyProtocol):
    """Classify product names by case-insensitive substring, first match wins.

    Usage::

        policy = SubstringTierPolicy()
        policy.resolve("Acme Premium Plan")  # TierResolution(PREMIUM, 2000)
        policy.resolve("Acme Basic")  # TierResolution(BASIC, 500)
    """

    def __init__(
        self,
        rules: Iterable[TierRule] = DEFAULT_TIER_RULES,
        default: TierResolution = DEFAULT_RESOLUTION,
    ) -> None:
        """Validate and store the rule table."""
        self._rules = tuple(rules)
        self._default = default

        for rule in self._rules:
            if not rule.match.strip():
                raise ValueError("Tier rule match text must not be empty")
            if rule.tier == Tier.FREE:
                raise ValueError("Tier rules cannot resolve to the free tier")
            if rule.credit_limit <= 0:
                raise ValueError(f"Tier rule '{rule.match}' needs a positive credit limit")
        if default.tier == Tier.FREE:
            raise ValueError("The default resolution cannot be the free tier")

        self._needles = tuple((rule.match.casefold(), rule) for rule in self._rules)

    @property
    def rules(self) -> tuple[TierRule, ...]:
        return self._rules

    def resolve(self, product_name: Optional[str]) -> TierResolution:
        """Resolve a product name; unknown or missing names get the default."""
        if not product_name:
            return self._default

        haystack = product_name.casefold()
        for needle, rule in self._needles:
            if needle in haystack:
                return TierResolution(tier=rule.tier, credit_limit=rule.credit_limit)
        return self._default
