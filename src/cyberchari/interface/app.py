"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from cyberchari.infrastructure.config import Settings, get_settings
from cyberchari.interface.dependencies import shutdown, startup
from cyberchari.interface.error_handlers import register_error_handlers
from cyberchari.interface.routes import router
from cyberchari.services.repository_parser import RepositoryParser


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup / shutdown of shared resources."""
    await startup(app)
    yield
    await shutdown(app)


def create_app(
    settings: Settings | None = None,
    parser: RepositoryParser | None = None,
) -> FastAPI:
    """Build and wire the FastAPI application.

    *parser* replaces the HTTP-backed repository parser (used by tests).
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="CyberChari Audit Platform",
        version="1.0.0",
        description=(
            "Smart-contract audit dashboard: connect GitHub / GitLab "
            "repositories, detect Solidity and Vyper contracts, and track "
            "audit sessions, reports and certificates."
        ),
        lifespan=_lifespan,
    )
    app.state.settings = settings
    app.state.parser = parser

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret.get_secret_value(),
        max_age=settings.session_max_age_seconds,
        https_only=settings.https_only_cookies,
        same_site="lax",
    )
    register_error_handlers(app)
    app.include_router(router)

    # ── Health check (simple liveness probe) ────────────────────────────

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
