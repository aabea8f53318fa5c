"""Shared fixtures for the Canispect test suite."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest
import pytest_asyncio

from canispect.core.config import Settings
from canispect.core.principal import Principal
from canispect.session.identity import Ed25519Identity, now_ns
from canispect.session.manager import SessionManager
from canispect.session.storage import MemoryStorage, StoredSession
from canispect.transport.endpoint import RuntimeContext
from canispect.transport.factory import TransportFactory

AUDITED_CANISTER = "rdmx6-jaaaa-aaaaa-aaadq-cai"
AUDITOR = Principal(bytes(range(1, 11)))


# ── Settings ─────────────────────────────────────────────────────────────────


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Development settings with the session file under tmp_path."""
    return Settings(app_env="development", session_path=str(tmp_path / "session.json"))


@pytest.fixture
def production_settings(tmp_path) -> Settings:
    return Settings(app_env="production", session_path=str(tmp_path / "session.json"))


# ── Identities & sessions ────────────────────────────────────────────────────


@pytest.fixture
def identity() -> Ed25519Identity:
    return Ed25519Identity.generate()


@pytest.fixture
def stored_session(identity: Ed25519Identity) -> StoredSession:
    """A persisted session valid for another hour."""
    return StoredSession(pem=identity.to_pem().decode(), expiration_ns=now_ns() + 3_600 * 10**9)


@pytest.fixture
def anonymous_session(settings: Settings) -> SessionManager:
    return SessionManager(settings)


@pytest_asyncio.fixture
async def authenticated_session(settings: Settings, stored_session: StoredSession) -> SessionManager:
    session = SessionManager(settings, storage=MemoryStorage(stored_session))
    await session.init()
    assert session.get_state().is_authenticated
    return session


# ── Fake replica ─────────────────────────────────────────────────────────────


class FakeReplica:
    """In-memory replica speaking the JSON gateway protocol.

    ``replies`` maps a method name to either a wire value or a callable that
    receives the request body and returns one.
    """

    def __init__(self) -> None:
        self.replies: dict[str, Any] = {}
        self.rejections: dict[str, tuple[int, str]] = {}
        self.requests: list[httpx.Request] = []
        self.calls: list[dict[str, Any]] = []
        self.status_fails = False
        self.unreachable = False
        self.root_key = "308182301d060d2b0601040182dc7c0503010201"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)

        if request.url.path == "/api/v2/status":
            if self.status_fails:
                return httpx.Response(503, json={"error": "replica starting"})
            return httpx.Response(200, json={"root_key": self.root_key})

        body = json.loads(request.content)
        body["_path"] = request.url.path
        self.calls.append(body)
        method = body["method_name"]

        if method in self.rejections:
            code, message = self.rejections[method]
            return httpx.Response(
                200, json={"status": "rejected", "reject_code": code, "reject_message": message}
            )
        reply: Any = self.replies.get(method)
        if callable(reply):
            reply = reply(body)
        return httpx.Response(200, json={"status": "replied", "reply": {"arg": reply}})


@pytest.fixture
def replica() -> FakeReplica:
    return FakeReplica()


@pytest_asyncio.fixture
async def http_client(replica: FakeReplica):
    async with httpx.AsyncClient(transport=httpx.MockTransport(replica.handler)) as client:
        yield client


@pytest.fixture
def make_factory(settings: Settings, http_client: httpx.AsyncClient) -> Callable[..., TransportFactory]:
    """Build a TransportFactory over the fake replica."""

    def _make(session: SessionManager, url: str = "http://localhost:4943", cfg: Settings | None = None) -> TransportFactory:
        return TransportFactory(
            session,
            cfg or settings,
            context=RuntimeContext.from_url(url),
            http=http_client,
        )

    return _make


# ── Wire payloads ────────────────────────────────────────────────────────────


@pytest.fixture
def analysis_result_wire() -> dict[str, Any]:
    """Analysis service reply for a small module."""
    return {
        "wasm_hash": "9f86d081884c7d659a2feaa0c55ad015a3bf4f1b2b0b822cd15d6c15b0f00a08",
        "static_analysis": {
            "tools_used": ["OWI", "SeeWasm"],
            "vulnerabilities_found": [
                {
                    "tool": "OWI",
                    "severity": {"High": None},
                    "category": "Memory Safety",
                    "message": "Potential buffer overflow detected",
                    "location": ["function_0"],
                },
                {
                    "tool": "SeeWasm",
                    "severity": "Low",
                    "category": "Code Quality",
                    "message": "Unused import",
                    "location": [],
                },
            ],
            "metrics": {
                "file_size_bytes": 10,
                "estimated_lines_of_code": 120,
                "function_count": 4,
                "complexity_score": 7,
            },
        },
        "ai_analysis": {
            "summary": "Small module with one memory safety concern.",
            "identified_patterns": ["Standard WASM binary structure"],
            "security_concerns": ["Unchecked memory access"],
            "recommendations": ["Add bounds checks"],
            "confidence_score": 0.82,
        },
        "overall_severity": {"Medium": None},
        "recommendations": ["Add bounds checks", "Review inter-canister calls"],
        "analysis_timestamp": 1_700_000_000_000_000_000,
    }


@pytest.fixture
def audit_summary_wire() -> dict[str, Any]:
    return {
        "id": "a1b2c3d4e5f60718",
        "canister_id": [AUDITED_CANISTER],
        "wasm_hash": "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855",
        "audit_timestamp": 1_700_000_123_456_789_012,
        "auditor": AUDITOR.to_text(),
        "severity": {"Critical": None},
        "findings_count": 3,
        "status": {"Completed": None},
    }


@pytest.fixture
def audit_record_wire(audit_summary_wire: dict[str, Any]) -> dict[str, Any]:
    record = {k: v for k, v in audit_summary_wire.items() if k != "findings_count"}
    record.update(
        {
            "findings": [
                {
                    "id": "f-1",
                    "severity": {"Critical": None},
                    "category": {"Reentrancy": None},
                    "title": "State mutated after await",
                    "description": "Inter-canister call interleaves with state updates.",
                    "recommendation": "Commit state before awaiting.",
                    "location": ["update_balance"],
                }
            ],
            "ai_summary": "One critical reentrancy issue.",
            "metadata": {
                "tools_used": ["AI Analysis"],
                "analysis_duration_ms": 1000,
                "lines_of_code": [120],
                "file_size_bytes": 2048,
            },
        }
    )
    return record
