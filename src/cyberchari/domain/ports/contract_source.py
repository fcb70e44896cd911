"""Port: contract source — defined by the domain, implemented by infrastructure."""

from __future__ import annotations

from typing import Protocol

from cyberchari.domain.entities import ParseResult


class ContractSourceProvider(Protocol):
    """Abstract contract for a source-control host that can yield contracts."""

    async def parse_repository(
        self, url: str, branch: str = "main", access_token: str | None = None
    ) -> ParseResult:
        """List the repository tree and return every contract file it holds."""
        ...

    async def validate_repository(
        self, url: str, access_token: str | None = None
    ) -> bool:
        """Return whether the repository exists and is readable."""
        ...
