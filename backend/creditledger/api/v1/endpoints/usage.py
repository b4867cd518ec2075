"""API endpoints for metered usage.

Application features call ``POST /usage/spend`` before running a metered
action and only run it on a 200.
"""

from typing import Union

from fastapi import Depends, Response
from fastapi.routing import APIRouter
from sqlalchemy.ext.asyncio import AsyncSession

from creditledger import schemas
from creditledger.api import deps
from creditledger.api.deps import Inject
from creditledger.domains.usage.protocols import UsageGateProtocol
from creditledger.domains.usage.types import Denied

router = APIRouter()


@router.post(
    "/spend",
    response_model=Union[schemas.SpendAccepted, schemas.SpendDenied],
    responses={402: {"model": schemas.SpendDenied}},
)
async def spend(
    request: schemas.SpendRequest,
    response: Response,
    db: AsyncSession = Depends(deps.get_db),
    gate: UsageGateProtocol = Inject(UsageGateProtocol),
) -> Union[schemas.SpendAccepted, schemas.SpendDenied]:
    """Debit credits for an action, or refuse with 402 and the current balance.

    Args:
        request: Account, action type, cost and metadata
        response: Outgoing response, status is set to 402 on denial
        db: Database session
        gate: Usage gate

    Returns:
        The accepted spend, or the denial with the untouched balance
    """
    decision = await gate.authorize(
        db,
        account_id=request.account_id,
        action_type=request.action_type,
        credits_required=request.credits,
        metadata=request.metadata,
    )
    if isinstance(decision, Denied):
        response.status_code = 402
        return schemas.SpendDenied(
            reason=decision.reason, credits_remaining=decision.credits_remaining
        )
    return schemas.SpendAccepted(
        credits_remaining=decision.credits_remaining, entry_id=decision.entry_id
    )
