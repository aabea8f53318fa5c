"""Shared enums and types used across the client."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from canispect.core.principal import Principal

if TYPE_CHECKING:
    from canispect.session.identity import Identity

NANOS_PER_MILLI = 1_000_000


def nanos_to_millis(nanos: int) -> int:
    """Convert a nanosecond timestamp to milliseconds for display."""
    return nanos // NANOS_PER_MILLI


# ── Enums ────────────────────────────────────────────────────────────────────


class Severity(str, enum.Enum):
    """Severity variant shared by the analysis service and the registry."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"
    UNKNOWN = "unknown"


class ServiceId(str, enum.Enum):
    """The two remote services this client talks to."""

    ANALYSIS = "analysis"
    AUDIT_REGISTRY = "audit_registry"


# ── Session ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AuthState:
    """Immutable snapshot of the session.

    ``is_authenticated`` holds exactly when ``identity`` and ``principal`` are
    both set and the principal is not the anonymous sentinel.
    """

    is_authenticated: bool = False
    identity: Identity | None = None
    principal: Principal | None = None

    @classmethod
    def anonymous(cls) -> AuthState:
        return cls()


# ── Requests ─────────────────────────────────────────────────────────────────


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class AnalysisMetadata(_Frozen):
    """Optional descriptive metadata sent along with a WASM module."""

    name: str | None = None
    description: str | None = None
    version: str | None = None


class WasmAnalysisRequest(_Frozen):
    """A WASM module to analyze."""

    wasm_bytes: bytes
    canister_id: Principal | None = None
    metadata: AnalysisMetadata | None = None


# ── Analysis results ─────────────────────────────────────────────────────────


class StaticFinding(_Frozen):
    tool: str
    severity: Severity
    category: str
    message: str
    location: str | None = None


class CodeMetrics(_Frozen):
    file_size_bytes: int
    estimated_lines_of_code: int
    function_count: int
    complexity_score: int


class StaticAnalysisResult(_Frozen):
    tools_used: list[str] = Field(default_factory=list)
    vulnerabilities_found: list[StaticFinding] = Field(default_factory=list)
    metrics: CodeMetrics


class AiAnalysisResult(_Frozen):
    summary: str
    identified_patterns: list[str] = Field(default_factory=list)
    security_concerns: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    confidence_score: float


class SecurityAnalysisResult(_Frozen):
    """Result of one analysis call. Never persisted by this client."""

    wasm_hash: str
    static_analysis: StaticAnalysisResult
    ai_analysis: AiAnalysisResult
    overall_severity: Severity
    recommendations: list[str] = Field(default_factory=list)
    analysis_timestamp: int  # nanoseconds

    @property
    def analysis_timestamp_ms(self) -> int:
        return nanos_to_millis(self.analysis_timestamp)


# ── Audit registry ───────────────────────────────────────────────────────────


class SecurityFinding(_Frozen):
    id: str
    severity: Severity
    category: str
    title: str
    description: str
    recommendation: str
    location: str | None = None


class AuditMetadata(_Frozen):
    tools_used: list[str] = Field(default_factory=list)
    analysis_duration_ms: int = 0
    lines_of_code: int | None = None
    file_size_bytes: int = 0


class AuditRecord(_Frozen):
    """Full audit record as stored by the registry."""

    id: str
    canister_id: Principal | None = None
    wasm_hash: str
    audit_timestamp: int  # nanoseconds
    auditor: Principal
    severity: Severity
    findings: list[SecurityFinding] = Field(default_factory=list)
    ai_summary: str = ""
    status: str
    metadata: AuditMetadata

    @property
    def audit_timestamp_ms(self) -> int:
        return nanos_to_millis(self.audit_timestamp)


class AuditSummary(_Frozen):
    """Listing entry returned by the registry queries."""

    id: str
    canister_id: Principal | None = None
    wasm_hash: str
    audit_timestamp: int  # nanoseconds
    auditor: Principal
    severity: Severity
    findings_count: int
    status: str

    @property
    def audit_timestamp_ms(self) -> int:
        return nanos_to_millis(self.audit_timestamp)


class AuditStatistics(_Frozen):
    """Registry-wide counters."""

    total: int = 0
    completed: int = 0
    critical: int = 0
    high: int = 0
