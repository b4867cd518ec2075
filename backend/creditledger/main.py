"""Main module of the FastAPI application.

This module sets up the FastAPI application, the middleware that logs requests and
unhandled exceptions, and the exception handlers that map domain errors to status codes.
"""

import asyncio
import contextlib
import os
import subprocess
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from creditledger.api.middleware import (
    add_request_id,
    authenticity_exception_handler,
    creditledger_exception_handler,
    exception_logging_middleware,
    insufficient_credits_exception_handler,
    log_requests,
    not_found_exception_handler,
    request_timeout_middleware,
    transient_exception_handler,
    validation_exception_handler,
)
from creditledger.api.v1.api import api_router
from creditledger.api.v1.endpoints import health
from creditledger.core.config import settings
from creditledger.core.exceptions import CreditLedgerException, NotFoundException, TransientError
from creditledger.core.logging import logger
from creditledger.db.session import get_db_context
from creditledger.domains.billing.exceptions import AuthenticityFailureError
from creditledger.domains.idempotency.store import run_purge_loop
from creditledger.domains.ledger.exceptions import InsufficientCreditsError


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events.

    Initializes the DI container, runs alembic migrations and starts the
    processed-event purge loop.
    """
    # Initialize the dependency injection container (fail fast if wiring is broken)
    from creditledger.core import container as container_mod
    from creditledger.core.container import initialize_container

    logger.info("Initializing dependency injection container...")
    initialize_container(settings)
    logger.info("Container initialized successfully")

    if settings.RUN_ALEMBIC_MIGRATIONS:
        logger.info("Running alembic migrations...")
        env = os.environ.copy()
        backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        env["PYTHONPATH"] = backend_dir
        subprocess.run(
            [sys.executable, "-m", "alembic", "upgrade", "heads"],
            check=True,
            cwd=backend_dir,
            env=env,
        )

    purge_task = asyncio.create_task(
        run_purge_loop(
            container_mod.container.idempotency,
            get_db_context,
            interval_seconds=settings.PROCESSED_EVENT_PURGE_INTERVAL_SECONDS,
        )
    )

    yield

    purge_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await purge_task
    container_mod.reset_container()


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(api_router, prefix=settings.API_V1_PREFIX)

# Register middleware directly in the correct order
# Order matters: the last registered is the outermost
app.middleware("http")(exception_logging_middleware)
app.middleware("http")(log_requests)
app.middleware("http")(request_timeout_middleware)
app.middleware("http")(add_request_id)

# Register exception handlers
app.exception_handler(RequestValidationError)(validation_exception_handler)
app.exception_handler(ValidationError)(validation_exception_handler)
app.exception_handler(NotFoundException)(not_found_exception_handler)
app.exception_handler(InsufficientCreditsError)(insufficient_credits_exception_handler)
app.exception_handler(AuthenticityFailureError)(authenticity_exception_handler)
app.exception_handler(TransientError)(transient_exception_handler)

# Catch-all for the rest of the domain taxonomy (BadRequestError and friends)
app.exception_handler(CreditLedgerException)(creditledger_exception_handler)
