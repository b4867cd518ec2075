"""Usage schemas."""

from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SpendRequest(BaseModel):
    """Schema for debiting credits before a metered action."""

    account_id: str = Field(..., min_length=1, description="Account to debit")
    action_type: str = Field(
        ..., min_length=1, max_length=100, description="Kind of action being metered"
    )
    credits: int = Field(..., gt=0, description="Credits the action costs")
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Free-form context stored on the spend entry"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "account_id": "acct_123",
                "action_type": "chat_message",
                "credits": 1,
                "metadata": {"conversation_id": "conv_42"},
            }
        }
    }


class SpendAccepted(BaseModel):
    """Response for a spend that was debited."""

    accepted: Literal[True] = True
    credits_remaining: int
    entry_id: Optional[UUID] = None


class SpendDenied(BaseModel):
    """Response for a spend that was refused. Nothing was debited."""

    accepted: Literal[False] = False
    reason: str
    credits_remaining: int
