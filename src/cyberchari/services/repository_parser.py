"""Repository parser — dispatches a repository URL to the owning provider.

This is the single entry point the API layer uses for contract detection.
It depends only on the :class:`ContractSourceProvider` port; concrete
adapters are injected by the interface layer.  Neither public coroutine
ever raises: failures come back as a :class:`ParseResult` error or
``False``.
"""

from __future__ import annotations

import logging
from typing import Mapping

from cyberchari.domain.entities import ContractInfo, ParseResult, ProviderKind
from cyberchari.domain.ports.contract_source import ContractSourceProvider
from cyberchari.domain.value_objects import detect_provider
from cyberchari.services.contract_metadata import extract_contract_info

logger = logging.getLogger(__name__)

UNSUPPORTED_PROVIDER_MESSAGE = (
    "Unsupported repository provider. Only GitHub and GitLab are supported."
)
UNKNOWN_PARSE_ERROR = "Unknown parsing error"


class RepositoryParser:
    """Route parse / validate requests to the provider that owns the URL."""

    def __init__(self, providers: Mapping[ProviderKind, ContractSourceProvider]) -> None:
        self._providers = dict(providers)

    def detect_provider(self, url: str) -> ProviderKind | None:
        return detect_provider(url)

    def _provider_for(self, url: str) -> ContractSourceProvider | None:
        kind = detect_provider(url)
        if kind is None:
            return None
        return self._providers.get(kind)

    async def parse_repository(
        self, url: str, branch: str = "main", access_token: str | None = None
    ) -> ParseResult:
        """List and fetch every contract file in the repository at *url*."""
        provider = self._provider_for(url)
        if provider is None:
            return ParseResult.failure(UNSUPPORTED_PROVIDER_MESSAGE)

        try:
            return await provider.parse_repository(url, branch, access_token)
        except Exception as exc:
            logger.exception("Unexpected error parsing %s", url)
            return ParseResult.failure(str(exc) or UNKNOWN_PARSE_ERROR)

    async def validate_repository(
        self, url: str, access_token: str | None = None
    ) -> bool:
        """Return whether *url* points at a reachable repository."""
        provider = self._provider_for(url)
        if provider is None:
            return False

        try:
            return await provider.validate_repository(url, access_token)
        except Exception:
            logger.debug("Validation raised for %s", url, exc_info=True)
            return False

    @staticmethod
    def extract_contract_info(content: str, file_name: str = "") -> ContractInfo:
        """On-demand metadata scan over already-fetched contract text."""
        return extract_contract_info(content, file_name)
