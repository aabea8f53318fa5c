"""Session lifecycle: init, login, logout and state propagation.

One :class:`SessionManager` is built by the host application and passed by
reference to everything that needs the session; there is no module-level
singleton, so independent instances never share state.

Usage::

    session = SessionManager(settings, storage=FileStorage(path), channel=PemFileChannel(pem))
    unsubscribe = session.subscribe(lambda state: print(state.principal))
    await session.init()
    await session.login()
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from canispect.core.config import Settings, get_settings
from canispect.core.errors import ProviderRejected, ProviderUnavailable
from canispect.core.types import AuthState
from canispect.session.auth_client import AuthClient
from canispect.session.providers import ProviderChannel
from canispect.session.pubsub import Channel, Listener, Unsubscribe
from canispect.session.storage import MemoryStorage, SessionStorage

logger = logging.getLogger(__name__)


class SessionManager:
    """Owns the authentication lifecycle and the identity state."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        storage: SessionStorage | None = None,
        channel: ProviderChannel | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._storage = storage if storage is not None else MemoryStorage()
        self._channel = channel
        self._client: AuthClient | None = None
        self._init_task: asyncio.Task[AuthClient] | None = None
        self._changes: Channel[AuthState] = Channel("session")

    @property
    def identity_provider(self) -> str:
        return self._settings.identity_provider_url

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def init(self) -> None:
        """Create the credential client once; safe to call concurrently."""
        await self._ensure_client()

    async def _ensure_client(self) -> AuthClient:
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._create_client())
        try:
            return await asyncio.shield(self._init_task)
        except Exception:
            # let a later call retry
            if self._init_task is not None and self._init_task.done():
                self._init_task = None
            raise

    async def _create_client(self) -> AuthClient:
        client = await AuthClient.create(self._storage, self._channel)
        self._client = client
        if await client.is_authenticated():
            logger.info("Restored session for %s", client.get_identity().principal)
            self._notify()
        return client

    async def login(self) -> None:
        """Run a provider login and publish the new state on success.

        Raises:
            ProviderRejected: the provider refused the login
            ProviderUnavailable: the provider could not be reached
        """
        client = await self._ensure_client()

        loop = asyncio.get_running_loop()
        outcome: asyncio.Future[None] = loop.create_future()

        def on_success() -> None:
            if not outcome.done():
                outcome.set_result(None)

        def on_error(error: BaseException) -> None:
            if not outcome.done():
                outcome.set_exception(_provider_error(error))

        await client.login(
            identity_provider=self.identity_provider,
            max_time_to_live_ns=self._settings.session_max_ttl_ns,
            on_success=on_success,
            on_error=on_error,
        )
        try:
            await outcome
        except (ProviderRejected, ProviderUnavailable) as exc:
            logger.error("Login failed: %s", exc)
            raise

        logger.info("Logged in as %s", self.get_state().principal)
        self._notify()

    async def logout(self) -> None:
        """Clear the credential and always publish the anonymous state."""
        if self._client is not None:
            await self._client.logout()
        else:
            await self._storage.clear()
        self._notify()

    # ── State ────────────────────────────────────────────────────────────

    def get_state(self) -> AuthState:
        """Recompute the session snapshot from the credential client."""
        if self._client is None:
            return AuthState.anonymous()

        identity = self._client.get_identity()
        principal = identity.principal
        if principal.is_anonymous:
            return AuthState.anonymous()
        return AuthState(is_authenticated=True, identity=identity, principal=principal)

    def subscribe(self, listener: Listener[AuthState]) -> Unsubscribe:
        return self._changes.subscribe(listener)

    def _notify(self) -> None:
        self._changes.publish(self.get_state())


def _provider_error(error: BaseException) -> ProviderRejected | ProviderUnavailable:
    if isinstance(error, (ProviderRejected, ProviderUnavailable)):
        return error
    if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError)):
        exc: ProviderRejected | ProviderUnavailable = ProviderUnavailable(
            f"identity provider unreachable: {error}", cause=error
        )
    else:
        exc = ProviderRejected(f"identity provider rejected login: {error}", cause=error)
    exc.__cause__ = error
    return exc
