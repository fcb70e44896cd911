"""GitLab REST API adapter — implements the ContractSourceProvider port."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from cyberchari.domain.value_objects import RepositoryReference
from cyberchari.infrastructure.provider_rest_adapter import ProviderRestAdapter
from cyberchari.services.content_decoder import decode_raw_content

_GITLAB_API = "https://gitlab.com/api/v4"


class GitLabRestAdapter(ProviderRestAdapter):
    """Concrete provider backed by the GitLab v4 REST API.

    Projects are addressed by their URL-encoded full path, so nested groups
    (``group/subgroup/project``) work unchanged.
    """

    provider_name = "GitLab"
    default_base_url = _GITLAB_API

    def _headers(self, access_token: str | None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    def _tree_request(self, ref: RepositoryReference) -> tuple[str, dict[str, str]]:
        """GET /projects/{id}/repository/tree?recursive=true&ref={branch}."""
        return (
            f"/projects/{ref.project_id}/repository/tree",
            {"recursive": "true", "ref": ref.branch},
        )

    def _tree_items(self, data: Any) -> list[dict[str, Any]]:
        return list(data)

    def _content_request(
        self, ref: RepositoryReference, path: str
    ) -> tuple[str, dict[str, str]]:
        """GET /projects/{id}/repository/files/{path}/raw?ref={branch}."""
        return (
            f"/projects/{ref.project_id}/repository/files/{quote(path, safe='')}/raw",
            {"ref": ref.branch},
        )

    def _decode(self, resp: httpx.Response) -> str:
        return decode_raw_content(resp.text)

    def _repository_endpoint(self, ref: RepositoryReference) -> str:
        return f"/projects/{ref.project_id}"
