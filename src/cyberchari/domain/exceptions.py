"""Domain exception hierarchy.

Each exception maps to a specific HTTP status code at the interface layer.
Inner layers raise these; the outermost error-handler translates them.
"""

from __future__ import annotations


class CyberChariError(Exception):
    """Base exception for the entire application."""


# ── Repository input ────────────────────────────────────────────────────────


class InvalidRepositoryUrlError(CyberChariError):
    """The URL names a supported host but not an owner/repository path."""


class UnsupportedProviderError(CyberChariError):
    """The URL belongs to neither GitHub nor GitLab."""


# ── Provider API errors ─────────────────────────────────────────────────────


class ProviderApiError(CyberChariError):
    """A provider answered the tree listing with a non-success status."""

    def __init__(self, provider: str, status_code: int) -> None:
        super().__init__(f"{provider} API error: {status_code}")
        self.provider = provider
        self.status_code = status_code


class RepositoryParseError(CyberChariError):
    """A parse finished with an error message instead of contracts."""


class RepositoryValidationError(CyberChariError):
    """The repository does not exist or the token cannot read it."""


# ── Authentication / authorization ──────────────────────────────────────────


class AuthenticationRequiredError(CyberChariError):
    """No logged-in user on the session."""


class InvalidCredentialsError(CyberChariError):
    """Email / password pair did not match an active user."""


class PermissionDeniedError(CyberChariError):
    """The user's role does not allow the operation."""


# ── Persistence ─────────────────────────────────────────────────────────────


class ResourceNotFoundError(CyberChariError):
    """The requested row does not exist or belongs to another user."""


class DuplicateResourceError(CyberChariError):
    """A unique value (e.g. an email address) is already taken."""


class InvalidStateTransitionError(CyberChariError):
    """The row is not in a state that allows the requested change."""
