"""Relational storage — thin query layer over the ORM models."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cyberchari.domain.entities import (
    AuditStatus,
    InvitationStatus,
    ParsedContract,
    VulnerabilitySeverity,
)
from cyberchari.domain.exceptions import (
    DuplicateResourceError,
    InvalidStateTransitionError,
)
from cyberchari.infrastructure.orm_models import (
    AuditInvitation,
    AuditReport,
    AuditSession,
    Repository,
    SmartContract,
    User,
    Vulnerability,
)

logger = logging.getLogger(__name__)

_ACTIVE_STATUSES = (AuditStatus.PENDING.value, AuditStatus.IN_PROGRESS.value)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Storage:
    """All database reads and writes the API needs, bound to one session."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def _save(self, obj: Any) -> Any:
        self._db.add(obj)
        self._db.commit()
        self._db.refresh(obj)
        return obj

    @staticmethod
    def _apply(obj: Any, updates: dict[str, Any]) -> None:
        for key, value in updates.items():
            setattr(obj, key, value)

    # ── Users ───────────────────────────────────────────────────────────

    def get_user(self, user_id: int) -> User | None:
        return self._db.get(User, user_id)

    def get_user_by_email(self, email: str) -> User | None:
        return self._db.scalars(select(User).where(User.email == email)).first()

    def list_users(self) -> list[User]:
        return list(self._db.scalars(select(User).order_by(User.created_at.desc())))

    def list_users_by_role(self, role: str) -> list[User]:
        return list(self._db.scalars(select(User).where(User.role == role)))

    def create_user(self, **fields: Any) -> User:
        try:
            return self._save(User(**fields))
        except IntegrityError as exc:
            self._db.rollback()
            raise DuplicateResourceError(
                f"A user with email {fields.get('email')!r} already exists."
            ) from exc

    def update_user(self, user: User, **updates: Any) -> User:
        self._apply(user, updates)
        return self._save(user)

    # ── Repositories ────────────────────────────────────────────────────

    def create_repository(self, **fields: Any) -> Repository:
        return self._save(Repository(**fields))

    def get_repository(self, repository_id: int) -> Repository | None:
        return self._db.get(Repository, repository_id)

    def list_repositories(self, user_id: int | None = None) -> list[Repository]:
        stmt = select(Repository).order_by(Repository.created_at.desc())
        if user_id is not None:
            stmt = stmt.where(Repository.user_id == user_id)
        return list(self._db.scalars(stmt))

    def update_repository(self, repository: Repository, **updates: Any) -> Repository:
        self._apply(repository, updates)
        return self._save(repository)

    # ── Smart contracts ─────────────────────────────────────────────────

    def store_contracts(
        self, repository: Repository, parsed: Iterable[ParsedContract]
    ) -> list[SmartContract]:
        """Upsert parsed contracts by file path and mark the repository synced.

        Contracts that vanished from the repository are removed unless an
        audit still references them.
        """
        now = _utcnow()
        existing = {c.file_path: c for c in self.list_contracts(repository.id)}
        stored: list[SmartContract] = []

        for contract in parsed:
            row = existing.pop(contract.file_path, None)
            if row is None:
                row = SmartContract(repository_id=repository.id, file_path=contract.file_path)
                self._db.add(row)
            row.file_name = contract.file_name
            row.contract_type = contract.type.value
            row.content = contract.content
            row.last_updated = now
            stored.append(row)

        for stale in existing.values():
            if not stale.audits:
                self._db.delete(stale)

        repository.last_sync_at = now
        self._db.commit()
        for row in stored:
            self._db.refresh(row)
        logger.info("Stored %d contract(s) for repository %d", len(stored), repository.id)
        return stored

    def list_contracts(self, repository_id: int) -> list[SmartContract]:
        return list(
            self._db.scalars(
                select(SmartContract)
                .where(SmartContract.repository_id == repository_id)
                .order_by(SmartContract.file_path)
            )
        )

    def get_contract(self, contract_id: int) -> SmartContract | None:
        return self._db.get(SmartContract, contract_id)

    # ── Audit sessions ──────────────────────────────────────────────────

    def create_audit(self, **fields: Any) -> AuditSession:
        return self._save(AuditSession(**fields))

    def get_audit(self, audit_id: int) -> AuditSession | None:
        return self._db.get(AuditSession, audit_id)

    def list_audits(
        self,
        auditor_id: int | None = None,
        *,
        active_only: bool = False,
        limit: int | None = None,
    ) -> list[AuditSession]:
        stmt = select(AuditSession).order_by(
            AuditSession.created_at.desc(), AuditSession.id.desc()
        )
        if auditor_id is not None:
            stmt = stmt.where(AuditSession.auditor_id == auditor_id)
        if active_only:
            stmt = stmt.where(AuditSession.status.in_(_ACTIVE_STATUSES))
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self._db.scalars(stmt))

    def update_audit(self, audit: AuditSession, **updates: Any) -> AuditSession:
        """Apply *updates*, stamping ``started_at`` / ``completed_at`` on transitions."""
        status = updates.get("status")
        if status == AuditStatus.IN_PROGRESS.value and audit.started_at is None:
            updates.setdefault("started_at", _utcnow())
        if status == AuditStatus.COMPLETED.value:
            updates.setdefault("completed_at", _utcnow())
            updates.setdefault("progress", 100)
        self._apply(audit, updates)
        return self._save(audit)

    # ── Vulnerabilities ─────────────────────────────────────────────────

    def create_vulnerability(self, **fields: Any) -> Vulnerability:
        return self._save(Vulnerability(**fields))

    def get_vulnerability(self, vulnerability_id: int) -> Vulnerability | None:
        return self._db.get(Vulnerability, vulnerability_id)

    def list_vulnerabilities(self, audit_id: int) -> list[Vulnerability]:
        return list(
            self._db.scalars(
                select(Vulnerability)
                .where(Vulnerability.audit_session_id == audit_id)
                .order_by(Vulnerability.id)
            )
        )

    def update_vulnerability(self, vulnerability: Vulnerability, **updates: Any) -> Vulnerability:
        self._apply(vulnerability, updates)
        return self._save(vulnerability)

    # ── Audit invitations ───────────────────────────────────────────────

    def create_invitation(self, **fields: Any) -> AuditInvitation:
        """Invite a user onto an audit; one pending invitation per user and audit."""
        pending = self._db.scalars(
            select(AuditInvitation).where(
                AuditInvitation.audit_session_id == fields["audit_session_id"],
                AuditInvitation.to_user_id == fields["to_user_id"],
                AuditInvitation.status == InvitationStatus.PENDING.value,
            )
        ).first()
        if pending is not None:
            raise DuplicateResourceError("An invitation for this user is already pending.")
        return self._save(AuditInvitation(**fields))

    def get_invitation(self, invitation_id: int) -> AuditInvitation | None:
        return self._db.get(AuditInvitation, invitation_id)

    def list_invitations(self, to_user_id: int) -> list[AuditInvitation]:
        return list(
            self._db.scalars(
                select(AuditInvitation)
                .where(AuditInvitation.to_user_id == to_user_id)
                .order_by(AuditInvitation.created_at.desc(), AuditInvitation.id.desc())
            )
        )

    def update_invitation_status(
        self, invitation: AuditInvitation, status: InvitationStatus
    ) -> AuditInvitation:
        """Accept or decline a pending invitation."""
        if invitation.status != InvitationStatus.PENDING.value:
            raise InvalidStateTransitionError(
                f"Invitation is already {invitation.status}."
            )
        invitation.status = status.value
        return self._save(invitation)

    def has_accepted_invitation(self, audit_id: int, user_id: int) -> bool:
        return self._count(
            select(func.count(AuditInvitation.id)).where(
                AuditInvitation.audit_session_id == audit_id,
                AuditInvitation.to_user_id == user_id,
                AuditInvitation.status == InvitationStatus.ACCEPTED.value,
            )
        ) > 0

    # ── Reports ─────────────────────────────────────────────────────────

    def create_report(self, **fields: Any) -> AuditReport:
        return self._save(AuditReport(**fields))

    def list_reports(self, auditor_id: int | None = None) -> list[AuditReport]:
        stmt = select(AuditReport).order_by(AuditReport.created_at.desc())
        if auditor_id is not None:
            stmt = stmt.join(AuditSession).where(AuditSession.auditor_id == auditor_id)
        return list(self._db.scalars(stmt))

    # ── Dashboard stats ─────────────────────────────────────────────────

    def _count(self, stmt: Any) -> int:
        return int(self._db.scalar(stmt) or 0)

    def get_user_stats(self, user_id: int) -> dict[str, int]:
        """Counters for one auditor's dashboard."""
        audits = select(func.count(AuditSession.id)).where(
            AuditSession.auditor_id == user_id
        )
        reports = (
            select(func.count(AuditReport.id))
            .join(AuditSession)
            .where(AuditSession.auditor_id == user_id)
        )
        critical = (
            select(func.count(Vulnerability.id))
            .join(AuditSession)
            .where(
                AuditSession.auditor_id == user_id,
                Vulnerability.severity == VulnerabilitySeverity.CRITICAL.value,
            )
        )
        return {
            "active_audits": self._count(
                audits.where(AuditSession.status == AuditStatus.IN_PROGRESS.value)
            ),
            "completed_audits": self._count(
                audits.where(AuditSession.status == AuditStatus.COMPLETED.value)
            ),
            "critical_issues": self._count(critical),
            "total_reports": self._count(reports),
            "certificates": self._count(
                reports.where(AuditReport.certificate_url.is_not(None))
            ),
            "repositories": self._count(
                select(func.count(Repository.id)).where(Repository.user_id == user_id)
            ),
        }

    def get_platform_stats(self) -> dict[str, int]:
        """Platform-wide counters for the admin dashboard."""
        audits = select(func.count(AuditSession.id))
        return {
            "total_users": self._count(select(func.count(User.id))),
            "total_repositories": self._count(select(func.count(Repository.id))),
            "total_contracts": self._count(select(func.count(SmartContract.id))),
            "active_audits": self._count(
                audits.where(AuditSession.status == AuditStatus.IN_PROGRESS.value)
            ),
            "completed_audits": self._count(
                audits.where(AuditSession.status == AuditStatus.COMPLETED.value)
            ),
            "critical_issues": self._count(
                select(func.count(Vulnerability.id)).where(
                    Vulnerability.severity == VulnerabilitySeverity.CRITICAL.value
                )
            ),
            "total_reports": self._count(select(func.count(AuditReport.id))),
            "certificates": self._count(
                select(func.count(AuditReport.id)).where(
                    AuditReport.certificate_url.is_not(None)
                )
            ),
        }
