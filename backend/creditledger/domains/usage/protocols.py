"""Usage domain protocols."""

from typing import Any, Optional, Protocol, runtime_checkable

from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.domains.usage.types import Decision


@runtime_checkable
class UsageGateProtocol(Protocol):
    """Pre-flight check that charges for a metered action."""

    async def authorize(
        self,
        db: AsyncSession,
        *,
        account_id: str,
        action_type: str,
        credits_required: int,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Decision:
        """Debit ``credits_required`` and allow, or deny without debiting.

        The check and the debit are a single ledger spend, so an allowed
        action has already been paid for.
        """
        ...
