"""Tier policy protocol."""

from typing import Optional, Protocol, runtime_checkable

from creditledger.domains.tiers.types import TierResolution


@runtime_checkable
class TierPolicyProtocol(Protocol):
    """Maps a subscription product onto a paid tier and its credit limit.

    Never returns the free tier: free is what an account has without an
    active paid subscription, not something a product resolves to.
    """

    def resolve(self, product_name: Optional[str]) -> TierResolution:
        """Resolve a product name to ``(tier, credit_limit)``."""
        ...
