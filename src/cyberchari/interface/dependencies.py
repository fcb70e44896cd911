"""FastAPI dependency injection wiring.

Shared resources (HTTP client, database engine, repository parser) live on
``app.state`` for the lifetime of the application; per-request objects
(database session, storage, current user) are built by the dependencies
below.
"""

from __future__ import annotations

from typing import Callable, Iterator

import httpx
from fastapi import Depends, FastAPI, Request
from sqlalchemy.orm import Session

from cyberchari.domain.entities import ProviderKind, UserRole
from cyberchari.domain.exceptions import (
    AuthenticationRequiredError,
    PermissionDeniedError,
)
from cyberchari.infrastructure.config import Settings
from cyberchari.infrastructure.database import (
    build_engine,
    build_session_factory,
    init_db,
    session_scope,
)
from cyberchari.infrastructure.github_rest_adapter import GitHubRestAdapter
from cyberchari.infrastructure.gitlab_rest_adapter import GitLabRestAdapter
from cyberchari.infrastructure.orm_models import User
from cyberchari.infrastructure.storage import Storage
from cyberchari.services.auth_service import AuthService
from cyberchari.services.repository_parser import RepositoryParser

SESSION_USER_KEY = "user_id"


def build_parser(client: httpx.AsyncClient, settings: Settings) -> RepositoryParser:
    """Wire one adapter per supported provider around a shared HTTP client."""
    return RepositoryParser(
        {
            ProviderKind.GITHUB: GitHubRestAdapter(client, settings.github_api_url),
            ProviderKind.GITLAB: GitLabRestAdapter(client, settings.gitlab_api_url),
        }
    )


async def startup(app: FastAPI) -> None:
    """Initialise shared resources — called from the lifespan context manager."""
    settings: Settings = app.state.settings

    engine = build_engine(settings.database_url)
    init_db(engine)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)

    if getattr(app.state, "parser", None) is None:
        app.state.http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout_seconds)
        )
        app.state.parser = build_parser(app.state.http_client, settings)


async def shutdown(app: FastAPI) -> None:
    """Release shared resources."""
    client: httpx.AsyncClient | None = getattr(app.state, "http_client", None)
    if client is not None:
        await client.aclose()
        app.state.http_client = None
        app.state.parser = None
    app.state.engine.dispose()


# ── Per-request dependencies ────────────────────────────────────────────────


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Iterator[Session]:
    yield from session_scope(request.app.state.session_factory)


def get_storage(db: Session = Depends(get_db)) -> Storage:
    return Storage(db)


def get_parser(request: Request) -> RepositoryParser:
    parser = getattr(request.app.state, "parser", None)
    assert parser is not None, "startup() was not called"
    return parser


def get_auth_service(
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings_dep),
) -> AuthService:
    password = settings.admin_password.get_secret_value() if settings.admin_password else None
    return AuthService(storage, admin_email=settings.admin_email, admin_password=password)


def get_current_user(request: Request, storage: Storage = Depends(get_storage)) -> User:
    """Resolve the logged-in user from the session cookie."""
    user_id = request.session.get(SESSION_USER_KEY)
    user = storage.get_user(user_id) if user_id is not None else None
    if user is None or not user.is_active:
        request.session.clear()
        raise AuthenticationRequiredError("Authentication required")
    return user


def require_role(*roles: UserRole) -> Callable[..., User]:
    """Dependency factory: the current user must hold one of *roles*."""
    allowed = {role.value for role in roles}

    def _dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise PermissionDeniedError("Insufficient permissions")
        return user

    return _dependency
