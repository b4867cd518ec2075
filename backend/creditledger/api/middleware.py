"""Middleware and exception handlers for the FastAPI application.

Exception handlers translate the domain exception taxonomy into HTTP status
codes. Billing providers treat 4xx as "do not retry" and 5xx as "retry with
backoff", so the split between 400 and 503 below is load-bearing.
"""

import asyncio
import time
import traceback
import uuid

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from creditledger.core.config import settings
from creditledger.core.exceptions import (
    BadRequestError,
    CreditLedgerException,
    NotFoundException,
    TransientError,
    unpack_validation_error,
)
from creditledger.core.logging import logger
from creditledger.domains.billing.exceptions import AuthenticityFailureError
from creditledger.domains.ledger.exceptions import (
    InsufficientCreditsError,
    InvalidSpendAmountError,
)
from creditledger.domains.usage.types import INSUFFICIENT_CREDITS

# Seconds a provider or client should wait before retrying a 503.
RETRY_AFTER_SECONDS = 5


async def add_request_id(request: Request, call_next: callable) -> Response:
    """Middleware to generate and add a request ID to the request for tracing.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request.

    """
    request.state.request_id = str(uuid.uuid4())
    response = await call_next(request)
    response.headers["X-Request-ID"] = request.state.request_id
    return response


async def log_requests(request: Request, call_next: callable) -> Response:
    """Middleware to log incoming requests.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request.

    """
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time
    logger.with_context(request_id=getattr(request.state, "request_id", None)).info(
        f"Handled request {request.method} {request.url.path} in {duration:.2f} seconds. "
        f"Response code: {response.status_code}"
    )
    return response


async def exception_logging_middleware(request: Request, call_next: callable) -> Response:
    """Middleware to log unhandled exceptions.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request.

    """
    try:
        response = await call_next(request)
        return response
    except Exception as exc:
        logger.error(f"Unhandled exception: {exc}\n{traceback.format_exc()}")

        response_content = {
            "detail": f"Internal Server Error: {exc.__class__.__name__}: {str(exc)}"
        }
        if settings.DEBUG:
            response_content["trace"] = traceback.format_exc()

        return JSONResponse(status_code=500, content=response_content)


async def request_timeout_middleware(request: Request, call_next: callable) -> Response:
    """Middleware to enforce request timeout.

    Store operations carry their own per-attempt deadline; this is the outer
    bound on a whole request, retries included.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request or 503 on timeout.

    """
    try:
        return await asyncio.wait_for(
            call_next(request), timeout=settings.API_REQUEST_TIMEOUT_SECONDS
        )
    except asyncio.TimeoutError:
        logger.warning(
            f"Request timeout after {settings.API_REQUEST_TIMEOUT_SECONDS}s: "
            f"{request.method} {request.url.path}"
        )
        return JSONResponse(
            status_code=503,
            content={
                "detail": f"Request timeout after {settings.API_REQUEST_TIMEOUT_SECONDS} seconds"
            },
            headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
        )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError | ValidationError
) -> JSONResponse:
    """Exception handler for validation errors that occur during request processing.

    Args:
    ----
        request (Request): The incoming request that triggered the exception.
        exc (RequestValidationError | ValidationError): The exception object that was raised.

    Returns:
    -------
        JSONResponse: A 422 Unprocessable Entity status response that details the validation
            errors, e.g. ``{"errors": [{"body.credits": "Input should be greater than 0"}]}``.

    """
    error_messages = unpack_validation_error(exc)
    logger.warning(f"Validation error: {error_messages}")
    return JSONResponse(status_code=422, content=error_messages)


async def not_found_exception_handler(request: Request, exc: NotFoundException) -> JSONResponse:
    """Exception handler for NotFoundException.

    Args:
    ----
        request (Request): The incoming request that triggered the exception.
        exc (NotFoundException): The exception object that was raised.

    Returns:
    -------
        JSONResponse: A 404 Not Found status response that details the error message.

    """
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def insufficient_credits_exception_handler(
    request: Request, exc: InsufficientCreditsError
) -> JSONResponse:
    """Exception handler for InsufficientCreditsError.

    Returns:
    -------
        JSONResponse: A 402 Payment Required response shaped like a denied spend.

    """
    return JSONResponse(
        status_code=402,
        content={
            "accepted": False,
            "reason": INSUFFICIENT_CREDITS,
            "credits_remaining": exc.credits_remaining,
        },
    )


async def authenticity_exception_handler(
    request: Request, exc: AuthenticityFailureError
) -> JSONResponse:
    """Exception handler for AuthenticityFailureError.

    The body never echoes why verification failed.
    """
    logger.with_context(
        security_event="webhook_signature_rejected",
        request_id=getattr(request.state, "request_id", None),
    ).warning(f"Rejected unauthenticated request to {request.url.path}")
    return JSONResponse(status_code=400, content={"detail": "Invalid signature"})


async def transient_exception_handler(request: Request, exc: TransientError) -> JSONResponse:
    """Exception handler for TransientError.

    Returns:
    -------
        JSONResponse: A 503 Service Unavailable response with a Retry-After header so
            callers (and the billing provider) redeliver.

    """
    logger.warning(f"Transient failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": str(exc)},
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


async def creditledger_exception_handler(
    request: Request, exc: CreditLedgerException
) -> JSONResponse:
    """Generic exception handler for all CreditLedgerException types.

    Maps exception types to HTTP status codes. Checks base classes so that
    any new domain exception inheriting from BadRequestError is mapped
    without registering it here. Order matters: the first match wins.
    """
    status_map = {
        InvalidSpendAmountError: 422,
        BadRequestError: 400,
    }

    for exc_type, code in status_map.items():
        if isinstance(exc, exc_type):
            return JSONResponse(status_code=code, content={"detail": str(exc)})

    logger.error(f"Unmapped {exc.__class__.__name__}: {exc}")
    return JSONResponse(status_code=500, content={"detail": str(exc)})
