"""Canispect gateway: typed operations over the analysis and registry services."""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from canispect.core.errors import CanispectError
from canispect.core.principal import Principal
from canispect.core.types import (
    AuditMetadata,
    AuditRecord,
    AuditStatistics,
    AuditSummary,
    SecurityAnalysisResult,
    ServiceId,
    WasmAnalysisRequest,
)
from canispect.gateway import marshal
from canispect.session.manager import SessionManager
from canispect.transport.agent import RemoteClient
from canispect.transport.factory import TransportFactory

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GatewayClient:
    """Async client for the Canispect services.

    Usage::

        session = SessionManager(settings)
        async with TransportFactory(session, settings) as transports:
            gateway = GatewayClient(session, transports)
            result = await gateway.analyze_wasm(WasmAnalysisRequest(wasm_bytes=data))
            print(result.overall_severity.value)

    Every call captures the session state when it starts; a login or logout
    while the call is in flight does not affect it.
    """

    def __init__(self, session: SessionManager, transports: TransportFactory) -> None:
        self._session = session
        self._transports = transports

    async def _invoke(
        self,
        operation: str,
        client: RemoteClient,
        method: str,
        *args: Any,
        decode: Callable[[Any], T],
    ) -> T:
        try:
            return decode(await client.call(method, *args))
        except CanispectError as exc:
            logger.error("Failed to %s: %s", operation, exc, extra={"method": method})
            raise

    # ── Analysis ─────────────────────────────────────────────────────────

    async def analyze_wasm(self, request: WasmAnalysisRequest) -> SecurityAnalysisResult:
        """Run a security analysis of a WASM module.

        Args:
            request: Module bytes plus optional canister id and metadata

        Returns:
            The decoded SecurityAnalysisResult
        """
        client = await self._transports.get_client(ServiceId.ANALYSIS)
        wire = marshal.encode_analysis_request(request)
        return await self._invoke(
            "analyze WASM", client, "analyze_wasm_security", wire, decode=marshal.decode_analysis_result
        )

    # ── Audit registry ───────────────────────────────────────────────────

    async def submit_audit_record(
        self,
        result: SecurityAnalysisResult,
        canister_id: Principal | None = None,
        analysis_duration_ms: int = 0,
    ) -> str:
        """Register an analysis result with the audit registry.

        The module bytes are not re-sent; the registry keys the record on the
        caller and the analysis metadata.

        Raises:
            AuthRequired: no authenticated session (no network call is made)
        """
        client = await self._transports.get_client(ServiceId.AUDIT_REGISTRY, require_auth=True)
        metrics = result.static_analysis.metrics
        metadata = AuditMetadata(
            tools_used=result.static_analysis.tools_used,
            analysis_duration_ms=analysis_duration_ms,
            lines_of_code=metrics.estimated_lines_of_code,
            file_size_bytes=metrics.file_size_bytes,
        )
        wire = marshal.encode_audit_request(canister_id, metadata)
        return await self._invoke(
            "submit audit record", client, "submit_audit_request", wire, decode=marshal.decode_text
        )

    async def get_audit_history(self, canister_id: Principal | None = None) -> list[AuditSummary]:
        """List audits of one canister.

        Without a canister id this returns ``[]``: the registry has no
        recent-audits listing.
        """
        if canister_id is None:
            return []
        client = await self._transports.get_client(ServiceId.AUDIT_REGISTRY)
        return await self._invoke(
            "get audit history",
            client,
            "list_audits_by_canister",
            marshal.encode_principal(canister_id),
            decode=_summaries,
        )

    async def get_audit_record(self, audit_id: str) -> AuditRecord | None:
        client = await self._transports.get_client(ServiceId.AUDIT_REGISTRY)
        return await self._invoke(
            "get audit record",
            client,
            "get_audit_record",
            audit_id,
            decode=lambda wire: marshal.from_opt(wire, marshal.decode_audit_record),
        )

    async def get_my_audits(self) -> list[AuditSummary]:
        """List audits submitted by the logged-in caller; ``[]`` when logged out."""
        state = self._session.get_state()
        if not state.is_authenticated or state.principal is None:
            return []
        client = await self._transports.get_client(ServiceId.AUDIT_REGISTRY, require_auth=True, state=state)
        return await self._invoke(
            "get my audits",
            client,
            "list_audits_by_auditor",
            marshal.encode_principal(state.principal),
            decode=_summaries,
        )

    async def get_audit_statistics(self) -> AuditStatistics:
        client = await self._transports.get_client(ServiceId.AUDIT_REGISTRY)
        return await self._invoke(
            "get audit statistics", client, "get_audit_statistics", decode=marshal.decode_audit_statistics
        )


def _summaries(wire: Any) -> list[AuditSummary]:
    return marshal.decode_vec(wire, marshal.decode_audit_summary)
