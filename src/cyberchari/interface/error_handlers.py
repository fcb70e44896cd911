"""Global exception handlers — translate domain errors to HTTP responses.

Each domain exception maps to a specific HTTP status code and the
standard ``{"status": "error", "message": "..."}`` envelope.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cyberchari.domain.exceptions import (
    AuthenticationRequiredError,
    CyberChariError,
    DuplicateResourceError,
    InvalidCredentialsError,
    InvalidRepositoryUrlError,
    InvalidStateTransitionError,
    PermissionDeniedError,
    ProviderApiError,
    RepositoryParseError,
    RepositoryValidationError,
    ResourceNotFoundError,
    UnsupportedProviderError,
)

logger = logging.getLogger(__name__)

_EXCEPTION_STATUS: list[tuple[type[CyberChariError], int]] = [
    (InvalidRepositoryUrlError, 400),
    (UnsupportedProviderError, 400),
    (RepositoryParseError, 400),
    (RepositoryValidationError, 400),
    (ProviderApiError, 502),
    (AuthenticationRequiredError, 401),
    (InvalidCredentialsError, 401),
    (PermissionDeniedError, 403),
    (ResourceNotFoundError, 404),
    (DuplicateResourceError, 409),
    (InvalidStateTransitionError, 409),
]


def _error_json(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": message},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach exception handlers to the FastAPI application."""

    # ── Domain exceptions ───────────────────────────────────────────────

    for exc_type, code in _EXCEPTION_STATUS:

        def _make_handler(
            status_code: int,
        ):  # type: ignore[no-untyped-def]
            async def handler(request: Request, exc: Exception) -> JSONResponse:
                logger.warning("%s: %s", type(exc).__name__, exc)
                return _error_json(status_code, str(exc))

            return handler

        app.add_exception_handler(exc_type, _make_handler(code))

    # ── Pydantic / FastAPI validation errors ────────────────────────────

    @app.exception_handler(RequestValidationError)
    async def validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        messages = []
        for err in exc.errors():
            loc = " → ".join(str(p) for p in err.get("loc", []))
            messages.append(f"{loc}: {err.get('msg', 'validation error')}")
        return _error_json(422, "; ".join(messages))

    # ── Catch-all for unexpected errors ─────────────────────────────────

    @app.exception_handler(Exception)
    async def generic_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception")
        return _error_json(500, "An unexpected error occurred. Please try again later.")
