"""Domain entities — pure data structures with no external dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ProviderKind(str, Enum):
    """Source-control hosts a repository can be connected from."""

    GITHUB = "github"
    GITLAB = "gitlab"


class ContractType(str, Enum):
    """Smart-contract language, decided by file extension alone."""

    SOLIDITY = "solidity"
    VYPER = "vyper"


class UserRole(str, Enum):
    ADMIN = "admin"
    AUDITOR = "auditor"
    VIEWER = "viewer"


class AuditStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class VulnerabilitySeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class InvitationStatus(str, Enum):
    """Lifecycle of an invitation to collaborate on an audit."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


@dataclass(frozen=True, slots=True)
class TreeEntry:
    """A single node from a provider's recursive tree listing."""

    path: str
    type: str  # "blob" or "tree"


@dataclass(frozen=True, slots=True)
class ParsedContract:
    """A contract file fetched from a repository, with its decoded text."""

    file_name: str
    file_path: str
    content: str
    type: ContractType


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Uniform envelope returned by every repository parse.

    When ``error`` is set, ``contracts`` is always empty.  ``skipped_files``
    lists contract paths whose content could not be fetched.
    """

    contracts: list[ParsedContract] = field(default_factory=list)
    error: str | None = None
    skipped_files: list[str] = field(default_factory=list)

    @classmethod
    def failure(cls, message: str) -> ParseResult:
        return cls(contracts=[], error=message)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class ContractInfo:
    """Shallow metadata pulled out of contract source text."""

    contract_name: str | None = None
    pragma_version: str | None = None
    imports: tuple[str, ...] = ()
    functions: tuple[str, ...] = ()
