"""Tier domain: product name to (tier, credit limit) classification.

Use Inject(TierPolicyProtocol) to get the configured policy.
"""

from creditledger.domains.tiers.policy import SubstringTierPolicy
from creditledger.domains.tiers.protocols import TierPolicyProtocol
from creditledger.domains.tiers.types import TierResolution, TierRule

__all__ = ["SubstringTierPolicy", "TierPolicyProtocol", "TierResolution", "TierRule"]
