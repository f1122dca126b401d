"""Exception handlers: domain errors to 4xx, everything else to a logged 500."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from poiking.errors import (
    ChallengeNotFoundError,
    ChallengeOwnershipError,
    ChallengeStateError,
    ConfigurationMissingError,
    InsufficientCoinsError,
    InvalidSessionError,
    PoikingError,
    RewardExpiredError,
    RewardNotFoundError,
    SessionLimitExceededError,
    UserNotFoundError,
)

logger = structlog.get_logger()

DOMAIN_STATUS: dict[type[PoikingError], int] = {
    InvalidSessionError: 422,
    SessionLimitExceededError: 400,
    ChallengeNotFoundError: 404,
    RewardNotFoundError: 404,
    UserNotFoundError: 404,
    ChallengeOwnershipError: 403,
    ChallengeStateError: 400,
    InsufficientCoinsError: 400,
    RewardExpiredError: 400,
    ConfigurationMissingError: 503,
}


def status_for(exc: PoikingError) -> int:
    for cls in type(exc).__mro__:
        if cls in DOMAIN_STATUS:
            return DOMAIN_STATUS[cls]
    return 400


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(PoikingError)
    async def domain_exception_handler(request: Request, exc: PoikingError) -> JSONResponse:
        status = status_for(exc)
        logger.info("domain_error", error_type=type(exc).__name__, error=str(exc), status=status)
        return JSONResponse(status_code=status, content={"detail": str(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": jsonable_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions; always returns JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the non-serialisable ``ctx`` payloads."""
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]
