"""API routes for the FastAPI application."""

from fastapi.routing import APIRouter

from creditledger.api.v1.endpoints import accounts, billing, usage

api_router = APIRouter()
api_router.include_router(accounts.router, prefix="/accounts", tags=["accounts"])
api_router.include_router(billing.router, prefix="/billing", tags=["billing"])
api_router.include_router(usage.router, prefix="/usage", tags=["usage"])
