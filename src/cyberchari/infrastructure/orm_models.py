"""ORM table mappings for users, repositories, contracts and the audit workflow."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from cyberchari.infrastructure.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    role = Column(String, nullable=False, default="viewer")  # admin / auditor / viewer
    is_active = Column(Boolean, nullable=False, default=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    repositories = relationship(
        "Repository", back_populates="user", cascade="all, delete-orphan"
    )


class Repository(Base):
    __tablename__ = "repositories"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    url = Column(String, nullable=False)
    provider = Column(String, nullable=False)  # github / gitlab
    branch = Column(String, nullable=False, default="main")
    access_token = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    user = relationship("User", back_populates="repositories")
    contracts = relationship(
        "SmartContract", back_populates="repository", cascade="all, delete-orphan"
    )


class SmartContract(Base):
    __tablename__ = "smart_contracts"

    id = Column(Integer, primary_key=True, index=True)
    repository_id = Column(
        Integer, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False
    )
    file_name = Column(String, nullable=False)
    file_path = Column(String, nullable=False)
    contract_type = Column(String, nullable=False)  # solidity / vyper
    content = Column(Text, nullable=True)
    last_updated = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    repository = relationship("Repository", back_populates="contracts")
    audits = relationship("AuditSession", back_populates="contract")


class AuditSession(Base):
    __tablename__ = "audit_sessions"

    id = Column(Integer, primary_key=True, index=True)
    contract_id = Column(Integer, ForeignKey("smart_contracts.id"), nullable=False)
    auditor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(String, nullable=False, default="pending")
    progress = Column(Integer, nullable=False, default=0)
    findings = Column(JSON, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    contract = relationship("SmartContract", back_populates="audits")
    reports = relationship(
        "AuditReport", back_populates="audit_session", cascade="all, delete-orphan"
    )
    vulnerabilities = relationship(
        "Vulnerability", back_populates="audit_session", cascade="all, delete-orphan"
    )
    invitations = relationship(
        "AuditInvitation", back_populates="audit_session", cascade="all, delete-orphan"
    )


class Vulnerability(Base):
    __tablename__ = "vulnerabilities"

    id = Column(Integer, primary_key=True, index=True)
    audit_session_id = Column(
        Integer, ForeignKey("audit_sessions.id", ondelete="CASCADE"), nullable=False
    )
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    severity = Column(String, nullable=False)  # low / medium / high / critical
    line_number = Column(Integer, nullable=True)
    code_snippet = Column(Text, nullable=True)
    recommendation = Column(Text, nullable=True)
    is_resolved = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    audit_session = relationship("AuditSession", back_populates="vulnerabilities")


class AuditInvitation(Base):
    __tablename__ = "audit_invitations"

    id = Column(Integer, primary_key=True, index=True)
    audit_session_id = Column(
        Integer, ForeignKey("audit_sessions.id", ondelete="CASCADE"), nullable=False
    )
    from_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    to_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(String, nullable=False, default="pending")  # pending / accepted / declined
    message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    audit_session = relationship("AuditSession", back_populates="invitations")


class AuditReport(Base):
    __tablename__ = "audit_reports"

    id = Column(Integer, primary_key=True, index=True)
    audit_session_id = Column(
        Integer, ForeignKey("audit_sessions.id", ondelete="CASCADE"), nullable=False
    )
    report_content = Column(Text, nullable=False)
    certificate_url = Column(String, nullable=True)
    severity_score = Column(Integer, nullable=True)
    issues_found = Column(Integer, nullable=False, default=0)
    recommendations = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    audit_session = relationship("AuditSession", back_populates="reports")
