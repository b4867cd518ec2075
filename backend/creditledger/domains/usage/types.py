"""Usage gate decision types."""

from dataclasses import dataclass
from typing import Optional, Union
from uuid import UUID

INSUFFICIENT_CREDITS = "insufficient_credits"


@dataclass(frozen=True)
class Allowed:
    """The credits were debited and the action may run."""

    credits_remaining: int
    entry_id: Optional[UUID] = None


@dataclass(frozen=True)
class Denied:
    """Nothing was debited; ``credits_remaining`` is the untouched balance."""

    reason: str
    credits_remaining: int


Decision = Union[Allowed, Denied]
