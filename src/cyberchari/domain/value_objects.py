"""Value objects — self-validating domain primitives."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from urllib.parse import quote

from cyberchari.domain.entities import ProviderKind
from cyberchari.domain.exceptions import (
    InvalidRepositoryUrlError,
    UnsupportedProviderError,
)

_GITHUB_URL_RE = re.compile(r"github\.com/(?P<owner>[^/]+)/(?P<repo>[^/]+)")
_GITLAB_URL_RE = re.compile(r"gitlab\.com/(?P<path>[^/]+(?:/[^/?#]+)+)")

_HOST_MARKERS: tuple[tuple[str, ProviderKind], ...] = (
    ("github.com", ProviderKind.GITHUB),
    ("gitlab.com", ProviderKind.GITLAB),
)


def detect_provider(url: str) -> ProviderKind | None:
    """Return the provider owning *url* by host substring, or ``None``."""
    for marker, kind in _HOST_MARKERS:
        if marker in url:
            return kind
    return None


def _strip_git_suffix(name: str) -> str:
    return name[:-4] if name.endswith(".git") else name


@dataclass(frozen=True, slots=True)
class RepositoryReference:
    """Validated pointer to a repository on a supported provider.

    For GitHub, *owner* and *name* are the two path segments after the host.
    For GitLab, *owner* is the (possibly nested) group path and *name* the
    project; :attr:`project_id` is the URL-encoded full path the GitLab API
    expects.
    """

    provider: ProviderKind
    owner: str
    name: str
    branch: str = "main"
    access_token: str | None = field(default=None, repr=False)

    @classmethod
    def from_url(
        cls,
        url: str,
        branch: str = "main",
        access_token: str | None = None,
    ) -> RepositoryReference:
        """Parse *url*; the provider is derived from its host."""
        provider = detect_provider(url)
        if provider is None:
            raise UnsupportedProviderError(
                "Unsupported repository provider. Only GitHub and GitLab are supported."
            )

        if provider is ProviderKind.GITHUB:
            match = _GITHUB_URL_RE.search(url)
            if not match:
                raise InvalidRepositoryUrlError("Invalid GitHub URL format")
            return cls(
                provider=provider,
                owner=match["owner"],
                name=_strip_git_suffix(match["repo"]),
                branch=branch,
                access_token=access_token,
            )

        match = _GITLAB_URL_RE.search(url.rstrip("/"))
        if not match:
            raise InvalidRepositoryUrlError("Invalid GitLab URL format")
        # drop UI suffixes such as "/-/tree/main"
        path = match["path"].split("/-/", 1)[0].rstrip("/")
        path = _strip_git_suffix(path)
        owner, _, name = path.rpartition("/")
        if not owner or not name:
            raise InvalidRepositoryUrlError("Invalid GitLab URL format")
        return cls(
            provider=provider,
            owner=owner,
            name=name,
            branch=branch,
            access_token=access_token,
        )

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def project_id(self) -> str:
        """URL-encoded ``owner/name`` (``/`` becomes ``%2F``)."""
        return quote(self.full_name, safe="")
