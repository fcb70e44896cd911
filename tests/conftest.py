from __future__ import annotations

import base64
from typing import Any, Iterator

import httpx
import pytest
from sqlalchemy.orm import Session

from cyberchari.infrastructure.database import (
    build_engine,
    build_session_factory,
    init_db,
)
from cyberchari.infrastructure.storage import Storage


class FakeProviderApi:
    """In-process stand-in for a provider REST API.

    Routes are keyed by the raw (still percent-encoded) request path without
    the query string; unknown paths answer 404.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Any] = {}
        self.requests: list[httpx.Request] = []

    def add(self, path: str, response: Any) -> None:
        self.routes[path] = response

    def add_json(self, path: str, payload: Any, status_code: int = 200) -> None:
        self.add(path, httpx.Response(status_code, json=payload))

    def add_text(self, path: str, text: str, status_code: int = 200) -> None:
        self.add(path, httpx.Response(status_code, text=text))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = request.url.raw_path.split(b"?", 1)[0].decode("ascii")
        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if isinstance(route, Exception):
            raise route
        return route

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def paths(self) -> list[str]:
        return [r.url.raw_path.split(b"?", 1)[0].decode("ascii") for r in self.requests]


def github_content(text: str) -> dict[str, str]:
    """Build a GitHub contents payload, wrapped at 60 columns like the real API."""
    encoded = base64.b64encode(text.encode("utf-8")).decode("ascii")
    wrapped = "\n".join(encoded[i : i + 60] for i in range(0, len(encoded), 60))
    return {"encoding": "base64", "content": wrapped + "\n"}


@pytest.fixture
def fake_api() -> FakeProviderApi:
    return FakeProviderApi()


@pytest.fixture
def db_session() -> Iterator[Session]:
    engine = build_engine("sqlite://")
    init_db(engine)
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def storage(db_session: Session) -> Storage:
    return Storage(db_session)
