"""Pydantic request / response DTOs for the API boundary."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cyberchari.domain.entities import (
    AuditStatus,
    ContractInfo,
    ContractType,
    InvitationStatus,
    ProviderKind,
    UserRole,
    VulnerabilitySeverity,
)


def _not_blank(value: str, field_name: str) -> str:
    stripped = value.strip()
    if not stripped:
        msg = f"{field_name} must not be empty."
        raise ValueError(msg)
    return stripped


class _OrmModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ── Auth / users ────────────────────────────────────────────────────────────


class LoginRequest(BaseModel):
    """Request body for ``POST /api/auth/login``."""

    email: str
    password: str


class UserResponse(_OrmModel):
    id: int
    email: str
    first_name: str | None = None
    last_name: str | None = None
    role: UserRole
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime | None = None


class LoginResponse(BaseModel):
    user: UserResponse
    message: str = "Login successful"


class UserCreateRequest(BaseModel):
    """Request body for ``POST /api/users`` (admin only)."""

    email: str
    password: str | None = Field(default=None, min_length=8)
    first_name: str = ""
    last_name: str = ""
    role: UserRole = UserRole.VIEWER

    @field_validator("email")
    @classmethod
    def _email_shape(cls, v: str) -> str:
        stripped = _not_blank(v, "email").lower()
        if "@" not in stripped:
            msg = f"Invalid email address: '{stripped}'."
            raise ValueError(msg)
        return stripped


class UserUpdateRequest(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    role: UserRole | None = None
    is_active: bool | None = None


# ── Repositories / contracts ────────────────────────────────────────────────


class RepositoryCreateRequest(BaseModel):
    """Request body for ``POST /api/repositories``."""

    url: str
    name: str | None = None
    branch: str = "main"
    access_token: str | None = None

    @field_validator("url")
    @classmethod
    def _url_not_blank(cls, v: str) -> str:
        return _not_blank(v, "url")

    @field_validator("branch")
    @classmethod
    def _branch_not_blank(cls, v: str) -> str:
        return _not_blank(v, "branch")


class RepositoryUpdateRequest(BaseModel):
    name: str | None = None
    branch: str | None = None
    access_token: str | None = None
    is_active: bool | None = None

    @field_validator("branch")
    @classmethod
    def _branch_not_blank(cls, v: str | None) -> str | None:
        return None if v is None else _not_blank(v, "branch")


class RepositoryResponse(_OrmModel):
    id: int
    user_id: int
    name: str
    url: str
    provider: ProviderKind
    branch: str
    is_active: bool
    has_access_token: bool = False
    last_sync_at: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Any) -> RepositoryResponse:
        model = cls.model_validate(row)
        model.has_access_token = bool(row.access_token)
        return model


class SmartContractResponse(_OrmModel):
    id: int
    repository_id: int
    file_name: str
    file_path: str
    contract_type: ContractType
    content: str | None = None
    last_updated: datetime | None = None


class ParseResponse(BaseModel):
    """Successful response from ``POST /api/repositories/{id}/parse``."""

    contracts: list[SmartContractResponse]
    skipped_files: list[str] = Field(default_factory=list)


class ContractInfoResponse(BaseModel):
    contract_name: str | None = None
    pragma_version: str | None = None
    imports: list[str] = Field(default_factory=list)
    functions: list[str] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, info: ContractInfo) -> ContractInfoResponse:
        return cls(
            contract_name=info.contract_name,
            pragma_version=info.pragma_version,
            imports=list(info.imports),
            functions=list(info.functions),
        )


# ── Audits / reports ────────────────────────────────────────────────────────


class AuditCreateRequest(BaseModel):
    contract_id: int


class AuditUpdateRequest(BaseModel):
    status: AuditStatus | None = None
    progress: int | None = Field(default=None, ge=0, le=100)
    findings: Any = None


class AuditResponse(_OrmModel):
    id: int
    contract_id: int
    auditor_id: int
    status: AuditStatus
    progress: int
    findings: Any = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None


class VulnerabilityCreateRequest(BaseModel):
    """Request body for ``POST /api/audits/{id}/vulnerabilities``."""

    title: str
    description: str
    severity: VulnerabilitySeverity
    line_number: int | None = Field(default=None, ge=1)
    code_snippet: str | None = None
    recommendation: str | None = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v: str) -> str:
        return _not_blank(v, "title")


class VulnerabilityUpdateRequest(BaseModel):
    severity: VulnerabilitySeverity | None = None
    recommendation: str | None = None
    is_resolved: bool | None = None


class VulnerabilityResponse(_OrmModel):
    id: int
    audit_session_id: int
    title: str
    description: str
    severity: VulnerabilitySeverity
    line_number: int | None = None
    code_snippet: str | None = None
    recommendation: str | None = None
    is_resolved: bool
    created_at: datetime | None = None


class InvitationCreateRequest(BaseModel):
    to_user_id: int
    message: str | None = None


class InvitationUpdateRequest(BaseModel):
    """Recipient's answer to an invitation."""

    status: InvitationStatus

    @field_validator("status")
    @classmethod
    def _answer_only(cls, v: InvitationStatus) -> InvitationStatus:
        if v is InvitationStatus.PENDING:
            msg = "status must be 'accepted' or 'declined'."
            raise ValueError(msg)
        return v


class InvitationResponse(_OrmModel):
    id: int
    audit_session_id: int
    from_user_id: int
    to_user_id: int
    status: InvitationStatus
    message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ReportCreateRequest(BaseModel):
    report_content: str
    certificate_url: str | None = None
    severity_score: int | None = Field(default=None, ge=0, le=100)
    issues_found: int = Field(default=0, ge=0)
    recommendations: str | None = None

    @field_validator("report_content")
    @classmethod
    def _content_not_blank(cls, v: str) -> str:
        return _not_blank(v, "report_content")


class ReportResponse(_OrmModel):
    id: int
    audit_session_id: int
    report_content: str
    certificate_url: str | None = None
    severity_score: int | None = None
    issues_found: int
    recommendations: str | None = None
    created_at: datetime | None = None


# ── Dashboard ───────────────────────────────────────────────────────────────


class UserStats(BaseModel):
    active_audits: int
    completed_audits: int
    critical_issues: int
    total_reports: int
    certificates: int
    repositories: int


class PlatformStats(BaseModel):
    total_users: int
    total_repositories: int
    total_contracts: int
    active_audits: int
    completed_audits: int
    critical_issues: int
    total_reports: int
    certificates: int


class DashboardStatsResponse(BaseModel):
    user: UserStats
    platform: PlatformStats | None = None


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """Standard error envelope returned on all failure paths."""

    status: str = "error"
    message: str
