"""GitHub REST API adapter — implements the ContractSourceProvider port."""

from __future__ import annotations

from typing import Any

import httpx

from cyberchari.domain.value_objects import RepositoryReference
from cyberchari.infrastructure.provider_rest_adapter import ProviderRestAdapter
from cyberchari.services.content_decoder import decode_base64_content

_GITHUB_API = "https://api.github.com"
_USER_AGENT = "CyberChari-Audit-Platform"


class GitHubRestAdapter(ProviderRestAdapter):
    """Concrete provider backed by the GitHub v3 REST API."""

    provider_name = "GitHub"
    default_base_url = _GITHUB_API

    def _headers(self, access_token: str | None) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": _USER_AGENT,
        }
        if access_token:
            headers["Authorization"] = f"token {access_token}"
        return headers

    def _tree_request(self, ref: RepositoryReference) -> tuple[str, dict[str, str]]:
        """GET /repos/{owner}/{repo}/git/trees/{branch}?recursive=1."""
        return (
            f"/repos/{ref.owner}/{ref.name}/git/trees/{ref.branch}",
            {"recursive": "1"},
        )

    def _tree_items(self, data: Any) -> list[dict[str, Any]]:
        return data.get("tree", [])

    def _content_request(
        self, ref: RepositoryReference, path: str
    ) -> tuple[str, dict[str, str]]:
        """GET /repos/{owner}/{repo}/contents/{path}?ref={branch}."""
        return (
            f"/repos/{ref.owner}/{ref.name}/contents/{path}",
            {"ref": ref.branch},
        )

    def _decode(self, resp: httpx.Response) -> str:
        return decode_base64_content(resp.json())

    def _repository_endpoint(self, ref: RepositoryReference) -> str:
        return f"/repos/{ref.owner}/{ref.name}"
