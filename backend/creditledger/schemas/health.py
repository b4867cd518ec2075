"""Health check response schemas."""

from typing import Literal

from pydantic import BaseModel


class LivenessResponse(BaseModel):
    """Response from the liveness probe."""

    status: Literal["alive"] = "alive"
