"""Health check endpoints."""

from fastapi.routing import APIRouter

from creditledger import schemas

router = APIRouter()


@router.get("")
async def health_check() -> dict[str, str]:
    """Check if the API is healthy.

    Returns:
    --------
        dict: A dictionary containing the status of the API.
    """
    return {"status": "healthy"}


@router.get("/live", response_model=schemas.LivenessResponse)
async def liveness() -> schemas.LivenessResponse:
    """Liveness probe, confirms the process is running."""
    return schemas.LivenessResponse()
