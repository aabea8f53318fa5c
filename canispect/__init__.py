"""Canispect — authenticated client for the WASM analysis and audit-registry services."""

from canispect.core.errors import (
    AuthRequired,
    CallRejected,
    CanispectError,
    MalformedResponse,
    ProviderRejected,
    ProviderUnavailable,
    TransportUnavailable,
)
from canispect.core.types import (
    AuditRecord,
    AuditSummary,
    AuthState,
    SecurityAnalysisResult,
    Severity,
    WasmAnalysisRequest,
)
from canispect.gateway.client import GatewayClient
from canispect.session.manager import SessionManager
from canispect.transport.factory import TransportFactory

__version__ = "0.1.0"

__all__ = [
    "AuditRecord",
    "AuditSummary",
    "AuthRequired",
    "AuthState",
    "CallRejected",
    "CanispectError",
    "GatewayClient",
    "MalformedResponse",
    "ProviderRejected",
    "ProviderUnavailable",
    "SecurityAnalysisResult",
    "SessionManager",
    "Severity",
    "TransportFactory",
    "TransportUnavailable",
    "WasmAnalysisRequest",
]
