"""Usage gate: the one call application features make before a metered action."""

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.core.logging import logger
from creditledger.domains.ledger.exceptions import InsufficientCreditsError
from creditledger.domains.ledger.protocols import AccountLedgerProtocol
from creditledger.domains.usage.protocols import UsageGateProtocol
from creditledger.domains.usage.types import INSUFFICIENT_CREDITS, Allowed, Decision, Denied


class UsageGate(UsageGateProtocol):
    """Turns a ledger spend into an allow/deny decision."""

    def __init__(self, ledger: AccountLedgerProtocol) -> None:
        self._ledger = ledger

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

        Unknown accounts, invalid amounts and store failures propagate.
        """
        try:
            result = await self._ledger.spend(
                db,
                account_id=account_id,
                credits_used=credits_required,
                action_type=action_type,
                metadata=metadata,
            )
        except InsufficientCreditsError as e:
            logger.with_context(account_id=account_id, action_type=action_type).info(
                f"Usage denied: {credits_required} credits required, {e.credits_remaining} left"
            )
            return Denied(reason=INSUFFICIENT_CREDITS, credits_remaining=e.credits_remaining)
        return Allowed(credits_remaining=result.credits_remaining, entry_id=result.entry_id)
