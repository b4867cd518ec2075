"""Usage domain: allow/deny gate in front of metered actions."""

from creditledger.domains.usage.gate import UsageGate
from creditledger.domains.usage.protocols import UsageGateProtocol
from creditledger.domains.usage.types import Allowed, Decision, Denied

__all__ = ["Allowed", "Decision", "Denied", "UsageGate", "UsageGateProtocol"]
