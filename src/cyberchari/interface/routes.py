"""API routes — thin controllers over storage, auth and the repository parser."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from cyberchari.domain.entities import UserRole
from cyberchari.domain.exceptions import (
    DuplicateResourceError,
    PermissionDeniedError,
    RepositoryParseError,
    RepositoryValidationError,
    ResourceNotFoundError,
)
from cyberchari.domain.value_objects import RepositoryReference
from cyberchari.infrastructure.config import Settings
from cyberchari.infrastructure.orm_models import (
    AuditSession,
    Repository,
    SmartContract,
    User,
)
from cyberchari.infrastructure.storage import Storage
from cyberchari.interface.dependencies import (
    SESSION_USER_KEY,
    get_auth_service,
    get_current_user,
    get_parser,
    get_settings_dep,
    get_storage,
    require_role,
)
from cyberchari.interface.schemas import (
    AuditCreateRequest,
    AuditResponse,
    AuditUpdateRequest,
    ContractInfoResponse,
    DashboardStatsResponse,
    ErrorResponse,
    InvitationCreateRequest,
    InvitationResponse,
    InvitationUpdateRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ParseResponse,
    PlatformStats,
    ReportCreateRequest,
    ReportResponse,
    RepositoryCreateRequest,
    RepositoryResponse,
    RepositoryUpdateRequest,
    SmartContractResponse,
    UserCreateRequest,
    UserResponse,
    UserStats,
    UserUpdateRequest,
    VulnerabilityCreateRequest,
    VulnerabilityResponse,
    VulnerabilityUpdateRequest,
)
from cyberchari.services.auth_service import AuthService
from cyberchari.services.repository_parser import RepositoryParser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

_ERRORS = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}

_require_admin = require_role(UserRole.ADMIN)
_require_auditor = require_role(UserRole.ADMIN, UserRole.AUDITOR)


def _is_admin(user: User) -> bool:
    return user.role == UserRole.ADMIN.value


def _is_reviewer(user: User) -> bool:
    return user.role in (UserRole.ADMIN.value, UserRole.AUDITOR.value)


# ── Ownership helpers ───────────────────────────────────────────────────────


def _owned_repository(storage: Storage, repository_id: int, user: User) -> Repository:
    repository = storage.get_repository(repository_id)
    if repository is None or (repository.user_id != user.id and not _is_admin(user)):
        raise ResourceNotFoundError("Repository not found")
    return repository


def _readable_repository(storage: Storage, repository_id: int, user: User) -> Repository:
    repository = storage.get_repository(repository_id)
    if repository is None or (repository.user_id != user.id and not _is_reviewer(user)):
        raise ResourceNotFoundError("Repository not found")
    return repository


def _visible_contract(storage: Storage, contract_id: int, user: User) -> SmartContract:
    """Auditors and admins see every contract; viewers only their own."""
    contract = storage.get_contract(contract_id)
    if contract is None:
        raise ResourceNotFoundError("Contract not found")
    _readable_repository(storage, contract.repository_id, user)
    return contract


def _owned_audit(storage: Storage, audit_id: int, user: User) -> AuditSession:
    audit = storage.get_audit(audit_id)
    if audit is None or (audit.auditor_id != user.id and not _is_admin(user)):
        raise ResourceNotFoundError("Audit not found")
    return audit


def _shared_audit(storage: Storage, audit_id: int, user: User) -> AuditSession:
    """Like ``_owned_audit`` but also open to users who accepted an invitation."""
    audit = storage.get_audit(audit_id)
    if audit is None or not (
        audit.auditor_id == user.id
        or _is_admin(user)
        or storage.has_accepted_invitation(audit.id, user.id)
    ):
        raise ResourceNotFoundError("Audit not found")
    return audit


# ── Auth ────────────────────────────────────────────────────────────────────


@router.post("/auth/login", response_model=LoginResponse, responses=_ERRORS)
def login(
    body: LoginRequest,
    request: Request,
    auth: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    """Check local credentials and start a session."""
    user = auth.authenticate(body.email.strip().lower(), body.password)
    request.session.clear()
    request.session[SESSION_USER_KEY] = user.id
    logger.info("User %d logged in", user.id)
    return LoginResponse(user=UserResponse.model_validate(user))


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> MessageResponse:
    request.session.clear()
    return MessageResponse(message="Logout successful")


@router.get("/auth/user", response_model=UserResponse, responses=_ERRORS)
def current_user(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(user)


# ── Dashboard ───────────────────────────────────────────────────────────────


@router.get("/dashboard/stats", response_model=DashboardStatsResponse, responses=_ERRORS)
def dashboard_stats(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> DashboardStatsResponse:
    """Per-user counters; admins also receive platform-wide totals."""
    platform = PlatformStats(**storage.get_platform_stats()) if _is_admin(user) else None
    return DashboardStatsResponse(
        user=UserStats(**storage.get_user_stats(user.id)),
        platform=platform,
    )


# ── User management (admin) ─────────────────────────────────────────────────


@router.get("/users", response_model=list[UserResponse], responses=_ERRORS)
def list_users(
    _: User = Depends(_require_admin),
    storage: Storage = Depends(get_storage),
) -> list[UserResponse]:
    return [UserResponse.model_validate(u) for u in storage.list_users()]


@router.post("/users", response_model=UserResponse, responses=_ERRORS)
def create_user(
    body: UserCreateRequest,
    _: User = Depends(_require_admin),
    auth: AuthService = Depends(get_auth_service),
) -> UserResponse:
    user = auth.create_user(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        role=body.role,
    )
    return UserResponse.model_validate(user)


@router.patch("/users/{user_id}", response_model=UserResponse, responses=_ERRORS)
def update_user(
    user_id: int,
    body: UserUpdateRequest,
    admin: User = Depends(_require_admin),
    storage: Storage = Depends(get_storage),
) -> UserResponse:
    target = storage.get_user(user_id)
    if target is None:
        raise ResourceNotFoundError("User not found")

    updates = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    if "role" in updates:
        updates["role"] = updates["role"].value
    if target.id == admin.id and (
        updates.get("is_active") is False
        or updates.get("role", UserRole.ADMIN.value) != UserRole.ADMIN.value
    ):
        raise PermissionDeniedError("Administrators cannot demote or deactivate themselves")

    return UserResponse.model_validate(storage.update_user(target, **updates))


# ── Repositories ────────────────────────────────────────────────────────────


@router.post("/repositories", response_model=RepositoryResponse, responses=_ERRORS)
async def create_repository(
    body: RepositoryCreateRequest,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    parser: RepositoryParser = Depends(get_parser),
) -> RepositoryResponse:
    """Connect a GitHub / GitLab repository after checking it is reachable."""
    ref = RepositoryReference.from_url(body.url, body.branch, body.access_token)

    if not await parser.validate_repository(body.url, body.access_token):
        raise RepositoryValidationError("Invalid repository URL or access denied")

    repository = storage.create_repository(
        user_id=user.id,
        name=body.name or ref.name,
        url=body.url,
        provider=ref.provider.value,
        branch=body.branch,
        access_token=body.access_token,
    )
    logger.info("User %d connected %s repository %s", user.id, ref.provider.value, ref.full_name)
    return RepositoryResponse.from_row(repository)


@router.get("/repositories", response_model=list[RepositoryResponse], responses=_ERRORS)
def list_repositories(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> list[RepositoryResponse]:
    rows = storage.list_repositories(None if _is_reviewer(user) else user.id)
    return [RepositoryResponse.from_row(r) for r in rows]


@router.patch(
    "/repositories/{repository_id}",
    response_model=RepositoryResponse,
    responses=_ERRORS,
)
def update_repository(
    repository_id: int,
    body: RepositoryUpdateRequest,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> RepositoryResponse:
    """Rename, retarget or deactivate a connected repository.

    An empty ``access_token`` clears the stored token.
    """
    repository = _owned_repository(storage, repository_id, user)
    updates = body.model_dump(exclude_unset=True)
    for key in ("name", "branch", "is_active"):
        if key in updates and updates[key] is None:
            del updates[key]
    if "access_token" in updates:
        updates["access_token"] = updates["access_token"] or None
    return RepositoryResponse.from_row(storage.update_repository(repository, **updates))


@router.post(
    "/repositories/{repository_id}/parse",
    response_model=ParseResponse,
    responses=_ERRORS,
)
async def parse_repository(
    repository_id: int,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    parser: RepositoryParser = Depends(get_parser),
) -> ParseResponse:
    """Scan the repository for contract files and store what was found."""
    repository = _owned_repository(storage, repository_id, user)

    result = await parser.parse_repository(
        repository.url, repository.branch, repository.access_token or None
    )
    if result.error:
        raise RepositoryParseError(result.error)

    stored = storage.store_contracts(repository, result.contracts)
    if result.skipped_files:
        logger.warning(
            "Repository %d: %d contract file(s) could not be fetched",
            repository.id,
            len(result.skipped_files),
        )
    return ParseResponse(
        contracts=[SmartContractResponse.model_validate(c) for c in stored],
        skipped_files=result.skipped_files,
    )


@router.get(
    "/repositories/{repository_id}/contracts",
    response_model=list[SmartContractResponse],
    responses=_ERRORS,
)
def list_contracts(
    repository_id: int,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> list[SmartContractResponse]:
    repository = _readable_repository(storage, repository_id, user)
    return [SmartContractResponse.model_validate(c) for c in storage.list_contracts(repository.id)]


@router.get(
    "/contracts/{contract_id}/info",
    response_model=ContractInfoResponse,
    responses=_ERRORS,
)
def contract_info(
    contract_id: int,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    parser: RepositoryParser = Depends(get_parser),
) -> ContractInfoResponse:
    """Pragma, name, imports and function signatures of a stored contract."""
    contract = _visible_contract(storage, contract_id, user)
    info = parser.extract_contract_info(contract.content or "", contract.file_name)
    return ContractInfoResponse.from_entity(info)


# ── Audits ──────────────────────────────────────────────────────────────────


@router.post("/audits", response_model=AuditResponse, responses=_ERRORS)
def create_audit(
    body: AuditCreateRequest,
    user: User = Depends(_require_auditor),
    storage: Storage = Depends(get_storage),
) -> AuditResponse:
    contract = _visible_contract(storage, body.contract_id, user)
    audit = storage.create_audit(contract_id=contract.id, auditor_id=user.id)
    return AuditResponse.model_validate(audit)


@router.get("/audits", response_model=list[AuditResponse], responses=_ERRORS)
def list_audits(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> list[AuditResponse]:
    rows = storage.list_audits(None if _is_admin(user) else user.id)
    return [AuditResponse.model_validate(a) for a in rows]


@router.get("/audits/active", response_model=list[AuditResponse], responses=_ERRORS)
def list_active_audits(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> list[AuditResponse]:
    rows = storage.list_audits(None if _is_admin(user) else user.id, active_only=True)
    return [AuditResponse.model_validate(a) for a in rows]


@router.get("/audits/recent", response_model=list[AuditResponse], responses=_ERRORS)
def list_recent_audits(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings_dep),
) -> list[AuditResponse]:
    rows = storage.list_audits(
        None if _is_admin(user) else user.id, limit=settings.recent_audits_limit
    )
    return [AuditResponse.model_validate(a) for a in rows]


@router.patch("/audits/{audit_id}", response_model=AuditResponse, responses=_ERRORS)
def update_audit(
    audit_id: int,
    body: AuditUpdateRequest,
    user: User = Depends(_require_auditor),
    storage: Storage = Depends(get_storage),
) -> AuditResponse:
    audit = _owned_audit(storage, audit_id, user)
    updates = body.model_dump(exclude_unset=True)
    for key in ("status", "progress"):
        if key in updates and updates[key] is None:
            del updates[key]
    if "status" in updates:
        updates["status"] = updates["status"].value
    return AuditResponse.model_validate(storage.update_audit(audit, **updates))


# ── Vulnerabilities ─────────────────────────────────────────────────────────


@router.get(
    "/audits/{audit_id}/vulnerabilities",
    response_model=list[VulnerabilityResponse],
    responses=_ERRORS,
)
def list_vulnerabilities(
    audit_id: int,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> list[VulnerabilityResponse]:
    audit = _shared_audit(storage, audit_id, user)
    return [VulnerabilityResponse.model_validate(v) for v in storage.list_vulnerabilities(audit.id)]


@router.post(
    "/audits/{audit_id}/vulnerabilities",
    response_model=VulnerabilityResponse,
    responses=_ERRORS,
)
def create_vulnerability(
    audit_id: int,
    body: VulnerabilityCreateRequest,
    user: User = Depends(_require_auditor),
    storage: Storage = Depends(get_storage),
) -> VulnerabilityResponse:
    audit = _shared_audit(storage, audit_id, user)
    fields = body.model_dump()
    fields["severity"] = body.severity.value
    vulnerability = storage.create_vulnerability(audit_session_id=audit.id, **fields)
    logger.info(
        "User %d recorded %s vulnerability on audit %d", user.id, body.severity.value, audit.id
    )
    return VulnerabilityResponse.model_validate(vulnerability)


@router.patch(
    "/vulnerabilities/{vulnerability_id}",
    response_model=VulnerabilityResponse,
    responses=_ERRORS,
)
def update_vulnerability(
    vulnerability_id: int,
    body: VulnerabilityUpdateRequest,
    user: User = Depends(_require_auditor),
    storage: Storage = Depends(get_storage),
) -> VulnerabilityResponse:
    vulnerability = storage.get_vulnerability(vulnerability_id)
    if vulnerability is None:
        raise ResourceNotFoundError("Vulnerability not found")
    _shared_audit(storage, vulnerability.audit_session_id, user)

    updates = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    if "severity" in updates:
        updates["severity"] = updates["severity"].value
    return VulnerabilityResponse.model_validate(
        storage.update_vulnerability(vulnerability, **updates)
    )


# ── Audit invitations ───────────────────────────────────────────────────────


@router.post(
    "/audits/{audit_id}/invitations",
    response_model=InvitationResponse,
    responses=_ERRORS,
)
def create_invitation(
    audit_id: int,
    body: InvitationCreateRequest,
    user: User = Depends(_require_auditor),
    storage: Storage = Depends(get_storage),
) -> InvitationResponse:
    """Invite another user to collaborate on one of your audits."""
    audit = _owned_audit(storage, audit_id, user)
    invitee = storage.get_user(body.to_user_id)
    if invitee is None or not invitee.is_active:
        raise ResourceNotFoundError("User not found")
    if invitee.id == audit.auditor_id:
        raise DuplicateResourceError("The user already owns this audit.")

    invitation = storage.create_invitation(
        audit_session_id=audit.id,
        from_user_id=user.id,
        to_user_id=invitee.id,
        message=body.message,
    )
    return InvitationResponse.model_validate(invitation)


@router.get("/invitations", response_model=list[InvitationResponse], responses=_ERRORS)
def list_invitations(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> list[InvitationResponse]:
    """Invitations addressed to the current user, newest first."""
    return [InvitationResponse.model_validate(i) for i in storage.list_invitations(user.id)]


@router.patch(
    "/invitations/{invitation_id}",
    response_model=InvitationResponse,
    responses=_ERRORS,
)
def answer_invitation(
    invitation_id: int,
    body: InvitationUpdateRequest,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> InvitationResponse:
    invitation = storage.get_invitation(invitation_id)
    if invitation is None or invitation.to_user_id != user.id:
        raise ResourceNotFoundError("Invitation not found")
    invitation = storage.update_invitation_status(invitation, body.status)
    return InvitationResponse.model_validate(invitation)


# ── Reports ─────────────────────────────────────────────────────────────────


@router.post("/audits/{audit_id}/report", response_model=ReportResponse, responses=_ERRORS)
def create_report(
    audit_id: int,
    body: ReportCreateRequest,
    user: User = Depends(_require_auditor),
    storage: Storage = Depends(get_storage),
) -> ReportResponse:
    audit = _owned_audit(storage, audit_id, user)
    report = storage.create_report(audit_session_id=audit.id, **body.model_dump())
    return ReportResponse.model_validate(report)


@router.get("/reports", response_model=list[ReportResponse], responses=_ERRORS)
def list_reports(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> list[ReportResponse]:
    rows = storage.list_reports(None if _is_admin(user) else user.id)
    return [ReportResponse.model_validate(r) for r in rows]
