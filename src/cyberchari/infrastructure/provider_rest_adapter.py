"""Shared REST plumbing for source-control providers.

Implements the ``ContractSourceProvider`` port once; the GitHub and GitLab
adapters only supply endpoints, headers and payload decoding.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from cyberchari.domain.entities import ParsedContract, ParseResult, TreeEntry
from cyberchari.domain.exceptions import (
    CyberChariError,
    InvalidRepositoryUrlError,
    ProviderApiError,
)
from cyberchari.domain.value_objects import RepositoryReference
from cyberchari.services.contract_filter import (
    contract_type_for,
    file_name_of,
    filter_contract_entries,
)

logger = logging.getLogger(__name__)


class ProviderRestAdapter:
    """Base ``ContractSourceProvider`` backed by a provider's REST API.

    Subclasses set :attr:`provider_name` and :attr:`default_base_url` and
    implement the endpoint / decoding hooks.
    """

    provider_name: str = ""
    default_base_url: str = ""

    def __init__(self, client: httpx.AsyncClient, base_url: str | None = None) -> None:
        self._client = client
        self._base_url = (base_url or self.default_base_url).rstrip("/")

    # ── Hooks ───────────────────────────────────────────────────────────

    def _reference(
        self, url: str, branch: str, access_token: str | None
    ) -> RepositoryReference:
        ref = RepositoryReference.from_url(url, branch, access_token)
        if ref.provider.value != self.provider_name.lower():
            raise InvalidRepositoryUrlError(f"Invalid {self.provider_name} URL format")
        return ref

    def _headers(self, access_token: str | None) -> dict[str, str]:
        raise NotImplementedError

    def _tree_request(self, ref: RepositoryReference) -> tuple[str, dict[str, str]]:
        raise NotImplementedError

    def _tree_items(self, data: Any) -> list[dict[str, Any]]:
        raise NotImplementedError

    def _content_request(
        self, ref: RepositoryReference, path: str
    ) -> tuple[str, dict[str, str]]:
        raise NotImplementedError

    def _decode(self, resp: httpx.Response) -> str:
        raise NotImplementedError

    def _repository_endpoint(self, ref: RepositoryReference) -> str:
        raise NotImplementedError

    # ── Public API ──────────────────────────────────────────────────────

    async def parse_repository(
        self, url: str, branch: str = "main", access_token: str | None = None
    ) -> ParseResult:
        """Fetch every ``.sol`` / ``.vy`` file on *branch*.

        A failed tree listing fails the whole parse; a failed file fetch only
        skips that file.
        """
        try:
            ref = self._reference(url, branch, access_token)
        except CyberChariError as exc:
            return ParseResult.failure(str(exc))

        try:
            entries = await self._fetch_tree(ref)
            contracts: list[ParsedContract] = []
            skipped: list[str] = []

            for entry in filter_contract_entries(entries):
                content = await self._fetch_content(ref, entry.path)
                if content is None:
                    skipped.append(entry.path)
                    continue
                contracts.append(
                    ParsedContract(
                        file_name=file_name_of(entry.path),
                        file_path=entry.path,
                        content=content,
                        type=contract_type_for(entry.path),
                    )
                )
        except Exception as exc:
            logger.warning("%s parsing error for %s: %s", self.provider_name, url, exc)
            return ParseResult.failure(str(exc) or "Unknown error occurred")

        logger.info(
            "Parsed %s: %d contract(s), %d skipped",
            ref.full_name,
            len(contracts),
            len(skipped),
        )
        return ParseResult(contracts=contracts, skipped_files=skipped)

    async def validate_repository(
        self, url: str, access_token: str | None = None
    ) -> bool:
        """Return ``True`` when the repository metadata endpoint answers 2xx."""
        try:
            ref = self._reference(url, "main", access_token)
            resp = await self._client.get(
                self._base_url + self._repository_endpoint(ref),
                headers=self._headers(access_token),
            )
        except Exception:
            logger.debug("Validation failed for %s", url, exc_info=True)
            return False
        return resp.is_success

    # ── Internals ───────────────────────────────────────────────────────

    async def _fetch_tree(self, ref: RepositoryReference) -> list[TreeEntry]:
        endpoint, params = self._tree_request(ref)
        resp = await self._client.get(
            self._base_url + endpoint,
            headers=self._headers(ref.access_token),
            params=params,
        )
        if not resp.is_success:
            raise ProviderApiError(self.provider_name, resp.status_code)

        return [
            TreeEntry(path=item["path"], type=item.get("type", "blob"))
            for item in self._tree_items(resp.json())
        ]

    async def _fetch_content(self, ref: RepositoryReference, path: str) -> str | None:
        """Return decoded file text, or ``None`` if the file cannot be read."""
        endpoint, params = self._content_request(ref, path)
        try:
            resp = await self._client.get(
                self._base_url + endpoint,
                headers=self._headers(ref.access_token),
                params=params,
            )
            if not resp.is_success:
                logger.warning(
                    "Skipping %s: %s returned HTTP %d",
                    path,
                    self.provider_name,
                    resp.status_code,
                )
                return None
            return self._decode(resp)
        except Exception:
            logger.warning("Error fetching content for %s — skipping", path, exc_info=True)
            return None
