"""Transport construction for the analysis and audit-registry services."""

from __future__ import annotations

import asyncio
import logging

import httpx

from canispect.core.config import Settings, get_settings
from canispect.core.errors import AuthRequired, TransportUnavailable
from canispect.core.principal import Principal, PrincipalError
from canispect.core.types import AuthState, ServiceId
from canispect.session.manager import SessionManager
from canispect.transport.agent import CallKind, HttpAgent, RemoteClient
from canispect.transport.endpoint import EndpointConfig, RuntimeContext, resolve_endpoint

logger = logging.getLogger(__name__)


SERVICE_METHODS: dict[ServiceId, dict[str, CallKind]] = {
    ServiceId.ANALYSIS: {
        "analyze_wasm_security": CallKind.UPDATE,
    },
    ServiceId.AUDIT_REGISTRY: {
        "submit_audit_request": CallKind.UPDATE,
        "get_audit_record": CallKind.QUERY,
        "list_audits_by_canister": CallKind.QUERY,
        "list_audits_by_auditor": CallKind.QUERY,
        "get_audit_statistics": CallKind.QUERY,
    },
}


class TransportFactory:
    """Builds ready-to-call remote clients.

    Each client is bound to the identity of the session snapshot taken when
    it was built. Request a fresh client per logical operation.

    Usage::

        async with TransportFactory(session) as transports:
            registry = await transports.get_client(ServiceId.AUDIT_REGISTRY, require_auth=True)
            audit_id = await registry.call("submit_audit_request", request)
    """

    def __init__(
        self,
        session: SessionManager,
        settings: Settings | None = None,
        *,
        context: RuntimeContext | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._context = context or RuntimeContext.from_settings(self._settings)
        self._endpoint = resolve_endpoint(
            self._context,
            local_replica_port=self._settings.local_replica_port,
            public_host=self._settings.public_host,
        )
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=httpx.Timeout(self._settings.request_timeout_seconds))
        self._root_key: bytes | None = None
        self._bootstrap_lock = asyncio.Lock()

    @property
    def endpoint(self) -> EndpointConfig:
        return self._endpoint

    # ── Context manager ──────────────────────────────────────────────────

    async def __aenter__(self) -> TransportFactory:
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the pooled HTTP client if this factory created it."""
        if self._owns_http:
            await self._http.aclose()

    # ── Construction ─────────────────────────────────────────────────────

    def canister_id(self, service: ServiceId) -> Principal:
        text = {
            ServiceId.ANALYSIS: self._settings.backend_canister_id,
            ServiceId.AUDIT_REGISTRY: self._settings.audit_registry_canister_id,
        }[service]
        return Principal.from_text(text)

    async def get_client(
        self,
        service: ServiceId,
        require_auth: bool = False,
        state: AuthState | None = None,
    ) -> RemoteClient:
        """Build a client for ``service`` bound to the current session.

        Args:
            service: Which remote service to talk to
            require_auth: Fail with AuthRequired unless the session is authenticated
            state: Session snapshot to bind; taken from the session manager if omitted

        Raises:
            AuthRequired: ``require_auth`` and no session (no network activity happens)
            TransportUnavailable: the client could not be constructed
        """
        snapshot = state if state is not None else self._session.get_state()
        if require_auth and not snapshot.is_authenticated:
            raise AuthRequired(f"{service.value} operation requires an authenticated session")

        try:
            canister_id = self.canister_id(service)
        except PrincipalError as exc:
            raise TransportUnavailable(f"invalid canister id for {service.value}: {exc}", cause=exc) from exc

        agent = HttpAgent(self._endpoint.host, snapshot.identity, self._http)
        if self._endpoint.fetch_root_key:
            await self._bootstrap(agent)

        return RemoteClient(agent, canister_id, SERVICE_METHODS[service])

    async def _bootstrap(self, agent: HttpAgent) -> None:
        """Fetch the local replica root key once and share it across agents.

        Failure is logged and swallowed: local replicas carry a lower trust bar.
        """
        if self._root_key is None:
            async with self._bootstrap_lock:
                if self._root_key is None:
                    try:
                        self._root_key = await agent.fetch_root_key()
                    except TransportUnavailable as exc:
                        logger.warning(
                            "Unable to fetch root key. Check that the local replica is running: %s",
                            exc,
                            extra={"host": self._endpoint.host},
                        )
                        return
        agent.root_key = self._root_key
