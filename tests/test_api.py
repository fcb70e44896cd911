"""HTTP-level tests for the FastAPI application."""

from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from cyberchari.domain.entities import (
    ContractType,
    ParsedContract,
    ParseResult,
    ProviderKind,
)
from cyberchari.infrastructure.config import Settings
from cyberchari.interface.app import create_app
from cyberchari.services.repository_parser import RepositoryParser

ADMIN_EMAIL = "admin@cyberchari.io"
ADMIN_PASSWORD = "admin-password"

TOKEN_SOURCE = (
    "pragma solidity ^0.8.0;\n"
    'import "./IERC20.sol";\n'
    "contract Token { function transfer(address to, uint256 amount) public {} }\n"
)


class StubProvider:
    """Provider double returning canned results."""

    def __init__(self) -> None:
        self.valid = True
        self.result = ParseResult(
            contracts=[
                ParsedContract("Token.sol", "contracts/Token.sol", TOKEN_SOURCE, ContractType.SOLIDITY),
                ParsedContract("Pool.vy", "contracts/Pool.vy", "# @version 0.3.7", ContractType.VYPER),
            ],
            skipped_files=["contracts/Broken.sol"],
        )
        self.parse_calls: list[tuple[str, str, str | None]] = []

    async def parse_repository(self, url, branch="main", access_token=None):
        self.parse_calls.append((url, branch, access_token))
        return self.result

    async def validate_repository(self, url, access_token=None):
        return self.valid


@pytest.fixture
def provider() -> StubProvider:
    return StubProvider()


@pytest.fixture
def client(provider: StubProvider) -> Iterator[TestClient]:
    settings = Settings(
        database_url="sqlite://",
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
        session_secret="test-secret",
    )
    parser = RepositoryParser({ProviderKind.GITHUB: provider, ProviderKind.GITLAB: provider})
    with TestClient(create_app(settings, parser=parser)) as test_client:
        yield test_client


def _login(client: TestClient, email: str = ADMIN_EMAIL, password: str = ADMIN_PASSWORD) -> dict:
    resp = client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["user"]


def _add_user(client: TestClient, email: str, role: str) -> dict:
    """Create a user as the admin, then switch the session to that user."""
    _login(client)
    resp = client.post(
        "/api/users",
        json={"email": email, "password": "user-password", "role": role},
    )
    assert resp.status_code == 200, resp.text
    client.post("/api/auth/logout")
    _login(client, email, "user-password")
    return resp.json()


def _add_auditor(client: TestClient, email: str = "auditor@example.com") -> dict:
    return _add_user(client, email, "auditor")


def _connect_and_parse(client: TestClient) -> tuple[dict, dict]:
    repo = client.post(
        "/api/repositories",
        json={"url": "https://github.com/acme/widgets", "access_token": "tok"},
    ).json()
    parsed = client.post(f"/api/repositories/{repo['id']}/parse").json()
    return repo, parsed


# ── Health / auth ───────────────────────────────────────────────────────────


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_protected_routes_require_login(client: TestClient) -> None:
    resp = client.get("/api/auth/user")
    assert resp.status_code == 401
    assert resp.json() == {"status": "error", "message": "Authentication required"}
    assert client.get("/api/repositories").status_code == 401


def test_login_session_and_logout(client: TestClient) -> None:
    user = _login(client, "ADMIN@cyberchari.io")
    assert user["role"] == "admin"
    assert user["email"] == ADMIN_EMAIL

    assert client.get("/api/auth/user").json()["id"] == user["id"]

    assert client.post("/api/auth/logout").json() == {"message": "Logout successful"}
    assert client.get("/api/auth/user").status_code == 401


def test_bad_credentials(client: TestClient) -> None:
    resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "nope"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid credentials"


# ── User management ─────────────────────────────────────────────────────────


def test_user_management_is_admin_only(client: TestClient) -> None:
    _add_auditor(client)
    resp = client.get("/api/users")
    assert resp.status_code == 403
    assert resp.json()["message"] == "Insufficient permissions"


def test_duplicate_user_is_conflict(client: TestClient) -> None:
    _login(client)
    body = {"email": "dup@example.com", "password": "long-enough"}
    assert client.post("/api/users", json=body).status_code == 200
    assert client.post("/api/users", json=body).status_code == 409


def test_admin_cannot_demote_self(client: TestClient) -> None:
    admin = _login(client)
    resp = client.patch(f"/api/users/{admin['id']}", json={"role": "viewer"})
    assert resp.status_code == 403

    resp = client.patch(f"/api/users/{admin['id']}", json={"first_name": "Root", "role": None})
    assert resp.status_code == 200
    assert resp.json()["first_name"] == "Root"
    assert resp.json()["role"] == "admin"


def test_invalid_user_payload_is_422(client: TestClient) -> None:
    _login(client)
    resp = client.post("/api/users", json={"email": "not-an-email", "password": "long-enough"})
    assert resp.status_code == 422
    assert resp.json()["status"] == "error"


# ── Repositories / contracts ────────────────────────────────────────────────


def test_connect_and_parse_repository(client: TestClient, provider: StubProvider) -> None:
    _add_auditor(client)
    repo, parsed = _connect_and_parse(client)

    assert repo["name"] == "widgets"
    assert repo["provider"] == "github"
    assert repo["branch"] == "main"
    assert repo["has_access_token"] is True
    assert "access_token" not in repo

    assert provider.parse_calls == [("https://github.com/acme/widgets", "main", "tok")]
    assert [c["file_path"] for c in parsed["contracts"]] == [
        "contracts/Token.sol",
        "contracts/Pool.vy",
    ]
    assert parsed["skipped_files"] == ["contracts/Broken.sol"]

    listed = client.get(f"/api/repositories/{repo['id']}/contracts").json()
    assert [c["contract_type"] for c in listed] == ["vyper", "solidity"]
    assert client.get("/api/repositories").json()[0]["last_sync_at"] is not None


def test_unreachable_repository_is_rejected(client: TestClient, provider: StubProvider) -> None:
    _login(client)
    provider.valid = False
    resp = client.post("/api/repositories", json={"url": "https://gitlab.com/acme/private"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid repository URL or access denied"


@pytest.mark.parametrize(
    ("url", "message"),
    [
        ("https://bitbucket.org/acme/widgets", "Unsupported repository provider"),
        ("https://github.com/acme", "Invalid GitHub URL format"),
    ],
)
def test_bad_repository_urls(client: TestClient, url: str, message: str) -> None:
    _login(client)
    resp = client.post("/api/repositories", json={"url": url})
    assert resp.status_code == 400
    assert resp.json()["message"].startswith(message)


def test_parse_failure_is_reported(client: TestClient, provider: StubProvider) -> None:
    _login(client)
    repo = client.post("/api/repositories", json={"url": "https://github.com/acme/widgets"}).json()
    provider.result = ParseResult.failure("GitHub API error: 404")

    resp = client.post(f"/api/repositories/{repo['id']}/parse")

    assert resp.status_code == 400
    assert resp.json() == {"status": "error", "message": "GitHub API error: 404"}
    assert provider.parse_calls[-1][2] is None


def test_update_repository(client: TestClient, provider: StubProvider) -> None:
    _login(client)
    repo, _ = _connect_and_parse(client)

    resp = client.patch(
        f"/api/repositories/{repo['id']}",
        json={"branch": "release", "access_token": "", "name": None},
    )

    assert resp.status_code == 200
    assert resp.json()["branch"] == "release"
    assert resp.json()["name"] == "widgets"
    assert resp.json()["has_access_token"] is False

    client.post(f"/api/repositories/{repo['id']}/parse")
    assert provider.parse_calls[-1] == ("https://github.com/acme/widgets", "release", None)


def test_other_users_repository_is_hidden(client: TestClient) -> None:
    _add_user(client, "first@example.com", "viewer")
    repo, parsed = _connect_and_parse(client)
    client.post("/api/auth/logout")
    _add_user(client, "second@example.com", "viewer")

    assert client.get(f"/api/repositories/{repo['id']}/contracts").status_code == 404
    assert client.get("/api/repositories").json() == []
    token_id = parsed["contracts"][0]["id"]
    assert client.get(f"/api/contracts/{token_id}/info").status_code == 404


def test_contract_info(client: TestClient) -> None:
    _login(client)
    _, parsed = _connect_and_parse(client)
    token_id = parsed["contracts"][0]["id"]

    info = client.get(f"/api/contracts/{token_id}/info").json()

    assert info == {
        "contract_name": "Token",
        "pragma_version": "^0.8.0",
        "imports": ['import "./IERC20.sol";'],
        "functions": ["function transfer(address to, uint256 amount)"],
    }
    assert client.get("/api/contracts/999/info").status_code == 404


# ── Audits / reports / dashboard ────────────────────────────────────────────


def test_audit_lifecycle_and_dashboard(client: TestClient) -> None:
    _add_auditor(client)
    _, parsed = _connect_and_parse(client)
    token_id = parsed["contracts"][0]["id"]

    audit = client.post("/api/audits", json={"contract_id": token_id}).json()
    assert audit["status"] == "pending"
    assert [a["id"] for a in client.get("/api/audits/active").json()] == [audit["id"]]

    resp = client.patch(
        f"/api/audits/{audit['id']}", json={"status": "in_progress", "progress": 30}
    )
    assert resp.json()["started_at"] is not None

    vuln = client.post(
        f"/api/audits/{audit['id']}/vulnerabilities",
        json={
            "title": "Reentrancy",
            "description": "transfer() calls out before updating balances",
            "severity": "critical",
            "line_number": 3,
        },
    )
    assert vuln.status_code == 200, vuln.text
    assert vuln.json()["is_resolved"] is False

    resp = client.patch(
        f"/api/audits/{audit['id']}",
        json={"status": "completed", "findings": {"summary": "One critical issue"}},
    )
    done = resp.json()
    assert done["progress"] == 100
    assert done["completed_at"] is not None
    assert client.get("/api/audits/active").json() == []

    report = client.post(
        f"/api/audits/{audit['id']}/report",
        json={
            "report_content": "One critical issue found.",
            "certificate_url": "https://certs.example.com/1",
            "issues_found": 1,
        },
    )
    assert report.status_code == 200, report.text
    assert [r["id"] for r in client.get("/api/reports").json()] == [report.json()["id"]]
    assert len(client.get("/api/audits/recent").json()) == 1

    stats = client.get("/api/dashboard/stats").json()
    assert stats["platform"] is None
    assert stats["user"] == {
        "active_audits": 0,
        "completed_audits": 1,
        "critical_issues": 1,
        "total_reports": 1,
        "certificates": 1,
        "repositories": 1,
    }

    client.post("/api/auth/logout")
    _login(client)
    platform = client.get("/api/dashboard/stats").json()["platform"]
    assert platform["total_users"] == 2
    assert platform["total_contracts"] == 2
    assert platform["critical_issues"] == 1


def test_viewers_cannot_start_audits(client: TestClient) -> None:
    _login(client)
    client.post("/api/users", json={"email": "viewer@example.com", "password": "viewer-pass"})
    client.post("/api/auth/logout")
    _login(client, "viewer@example.com", "viewer-pass")

    resp = client.post("/api/audits", json={"contract_id": 1})
    assert resp.status_code == 403


def test_invalid_progress_is_rejected(client: TestClient) -> None:
    _add_auditor(client)
    _, parsed = _connect_and_parse(client)
    audit = client.post("/api/audits", json={"contract_id": parsed["contracts"][0]["id"]}).json()

    resp = client.patch(f"/api/audits/{audit['id']}", json={"progress": 150})
    assert resp.status_code == 422


def test_auditor_can_audit_contract_connected_by_admin(client: TestClient) -> None:
    _login(client)
    repo, parsed = _connect_and_parse(client)
    token_id = parsed["contracts"][0]["id"]
    client.post("/api/auth/logout")
    _add_auditor(client)

    assert [r["id"] for r in client.get("/api/repositories").json()] == [repo["id"]]
    assert len(client.get(f"/api/repositories/{repo['id']}/contracts").json()) == 2
    assert client.get(f"/api/contracts/{token_id}/info").status_code == 200

    resp = client.post("/api/audits", json={"contract_id": token_id})
    assert resp.status_code == 200, resp.text
    assert resp.json()["contract_id"] == token_id

    assert client.post(f"/api/repositories/{repo['id']}/parse").status_code == 404
    assert client.post("/api/audits", json={"contract_id": 999}).status_code == 404


# ── Vulnerabilities / invitations ───────────────────────────────────────────


def _start_audit(client: TestClient, email: str = "lead@example.com") -> dict:
    user = _add_auditor(client, email)
    _, parsed = _connect_and_parse(client)
    audit = client.post("/api/audits", json={"contract_id": parsed["contracts"][0]["id"]})
    return {"user": user, "audit": audit.json()}


def test_vulnerability_listing_and_resolution(client: TestClient) -> None:
    audit_id = _start_audit(client)["audit"]["id"]
    url = f"/api/audits/{audit_id}/vulnerabilities"

    assert client.get(url).json() == []
    high = client.post(
        url, json={"title": "Unchecked call", "description": "Ignored return", "severity": "high"}
    ).json()
    client.post(url, json={"title": "Gas", "description": "Loop", "severity": "low"})

    listed = client.get(url).json()
    assert [(v["title"], v["severity"]) for v in listed] == [
        ("Unchecked call", "high"),
        ("Gas", "low"),
    ]

    resp = client.patch(f"/api/vulnerabilities/{high['id']}", json={"is_resolved": True})
    assert resp.json()["is_resolved"] is True
    assert resp.json()["severity"] == "high"

    bad = client.post(url, json={"title": "X", "description": "Y", "severity": "catastrophic"})
    assert bad.status_code == 422
    assert client.get("/api/audits/999/vulnerabilities").status_code == 404


def test_invitation_grants_access_once_accepted(client: TestClient) -> None:
    audit_id = _start_audit(client)["audit"]["id"]
    client.post("/api/auth/logout")
    guest = _add_auditor(client, "guest@example.com")
    url = f"/api/audits/{audit_id}/vulnerabilities"
    assert client.get(url).status_code == 404

    client.post("/api/auth/logout")
    _login(client, "lead@example.com", "user-password")
    invite_url = f"/api/audits/{audit_id}/invitations"
    resp = client.post(invite_url, json={"to_user_id": guest["id"], "message": "Help?"})
    assert resp.status_code == 200, resp.text
    invitation = resp.json()
    assert invitation["status"] == "pending"
    assert client.post(invite_url, json={"to_user_id": guest["id"]}).status_code == 409
    assert client.post(invite_url, json={"to_user_id": 999}).status_code == 404
    assert client.get("/api/invitations").json() == []

    client.post("/api/auth/logout")
    _login(client, "guest@example.com", "user-password")
    assert [i["id"] for i in client.get("/api/invitations").json()] == [invitation["id"]]
    resp = client.patch(f"/api/invitations/{invitation['id']}", json={"status": "accepted"})
    assert resp.json()["status"] == "accepted"

    added = client.post(
        url, json={"title": "Reentrancy", "description": "withdraw()", "severity": "critical"}
    )
    assert added.status_code == 200, added.text
    assert [v["title"] for v in client.get(url).json()] == ["Reentrancy"]

    again = client.patch(f"/api/invitations/{invitation['id']}", json={"status": "declined"})
    assert again.status_code == 409


def test_only_the_recipient_answers_an_invitation(client: TestClient) -> None:
    audit_id = _start_audit(client)["audit"]["id"]
    client.post("/api/auth/logout")
    guest = _add_auditor(client, "guest@example.com")

    client.post("/api/auth/logout")
    _login(client, "lead@example.com", "user-password")
    invitation = client.post(
        f"/api/audits/{audit_id}/invitations", json={"to_user_id": guest["id"]}
    ).json()

    resp = client.patch(f"/api/invitations/{invitation['id']}", json={"status": "accepted"})
    assert resp.status_code == 404

    client.post("/api/auth/logout")
    _login(client, "guest@example.com", "user-password")
    pending = client.patch(f"/api/invitations/{invitation['id']}", json={"status": "pending"})
    assert pending.status_code == 422
    declined = client.patch(f"/api/invitations/{invitation['id']}", json={"status": "declined"})
    assert declined.json()["status"] == "declined"
    assert client.get(f"/api/audits/{audit_id}/vulnerabilities").status_code == 404
