"""Local-credential authentication and user provisioning."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timezone

from cyberchari.domain.entities import UserRole
from cyberchari.domain.exceptions import InvalidCredentialsError
from cyberchari.infrastructure.orm_models import User
from cyberchari.infrastructure.storage import Storage

logger = logging.getLogger(__name__)

_HASH_NAME = "sha256"
_ITERATIONS = 260_000


def hash_password(password: str, *, salt: str | None = None) -> str:
    """Return ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>``."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        _HASH_NAME, password.encode("utf-8"), salt.encode("utf-8"), _ITERATIONS
    )
    return f"pbkdf2_{_HASH_NAME}${_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, expected = encoded.split("$")
    except ValueError:
        return False
    if algorithm != f"pbkdf2_{_HASH_NAME}":
        return False
    digest = hashlib.pbkdf2_hmac(
        _HASH_NAME, password.encode("utf-8"), salt.encode("utf-8"), int(iterations)
    )
    return hmac.compare_digest(digest.hex(), expected)


class AuthService:
    """Authenticate email / password pairs against stored users.

    Parameters
    ----------
    storage:
        Storage bound to the request's database session.
    admin_email, admin_password:
        Optional bootstrap administrator.  A matching login creates (or
        refreshes) the admin row so a fresh install can be administered.
    """

    def __init__(
        self,
        storage: Storage,
        admin_email: str | None = None,
        admin_password: str | None = None,
    ) -> None:
        self._storage = storage
        self._admin_email = admin_email.strip().lower() if admin_email else None
        self._admin_password = admin_password

    def authenticate(self, email: str, password: str) -> User:
        email = email.strip().lower()
        user = self._authenticate_admin(email, password) or self._authenticate_user(
            email, password
        )
        if user is None:
            logger.info("Failed login for %s", email)
            raise InvalidCredentialsError("Invalid credentials")
        return self._storage.update_user(user, last_login_at=datetime.now(timezone.utc))

    def _authenticate_admin(self, email: str, password: str) -> User | None:
        if not (self._admin_email and self._admin_password):
            return None
        if email != self._admin_email or not hmac.compare_digest(
            password.encode("utf-8"), self._admin_password.encode("utf-8")
        ):
            return None

        admin = self._storage.get_user_by_email(email)
        if admin is None:
            logger.info("Provisioning bootstrap admin %s", email)
            admin = self._storage.create_user(
                email=email,
                password_hash=hash_password(password),
                first_name="Admin",
                last_name="User",
                role=UserRole.ADMIN.value,
                is_active=True,
            )
        elif admin.role != UserRole.ADMIN.value or not admin.is_active:
            admin = self._storage.update_user(
                admin, role=UserRole.ADMIN.value, is_active=True
            )
        return admin

    def _authenticate_user(self, email: str, password: str) -> User | None:
        user = self._storage.get_user_by_email(email)
        if user is None or not user.password_hash or not user.is_active:
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    def create_user(
        self,
        email: str,
        password: str | None = None,
        first_name: str = "",
        last_name: str = "",
        role: UserRole = UserRole.VIEWER,
    ) -> User:
        return self._storage.create_user(
            email=email,
            password_hash=hash_password(password) if password else None,
            first_name=first_name,
            last_name=last_name,
            role=role.value,
            is_active=True,
        )
