"""API endpoints for accounts and their ledgers."""

from typing import Optional

from fastapi import Depends, Query
from fastapi.routing import APIRouter
from sqlalchemy.ext.asyncio import AsyncSession

from creditledger import schemas
from creditledger.api import deps
from creditledger.api.deps import Inject
from creditledger.domains.ledger.protocols import AccountLedgerProtocol

router = APIRouter()


@router.post("", response_model=schemas.Account)
async def open_account(
    account_in: schemas.AccountCreate,
    db: AsyncSession = Depends(deps.get_db),
    ledger: AccountLedgerProtocol = Inject(AccountLedgerProtocol),
) -> schemas.Account:
    """Open a free-tier account. Opening an existing account returns it unchanged."""
    snapshot = await ledger.open_account(
        db,
        account_id=account_in.account_id,
        billing_customer_ref=account_in.billing_customer_ref,
    )
    return schemas.Account.model_validate(snapshot)


@router.get("/{account_id}/ledger", response_model=schemas.AccountLedger)
async def get_ledger(
    account_id: str,
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Newest entries to return"),
    db: AsyncSession = Depends(deps.get_db),
    ledger: AccountLedgerProtocol = Inject(AccountLedgerProtocol),
) -> schemas.AccountLedger:
    """Get an account's balance, newest spend entries and usage statistics."""
    view = await ledger.get_ledger(db, account_id=account_id, limit=limit)
    return schemas.AccountLedger.model_validate(view)
