"""Credential client: holds the current identity and drives provider logins."""

from __future__ import annotations

import logging
from typing import Callable

from cryptography.exceptions import UnsupportedAlgorithm

from canispect.core.errors import ProviderUnavailable
from canispect.session.identity import (
    AnonymousIdentity,
    DelegatedIdentity,
    Ed25519Identity,
    Identity,
    now_ns,
)
from canispect.session.providers import ProviderChannel
from canispect.session.storage import SessionStorage, StoredSession

logger = logging.getLogger(__name__)


class AuthClient:
    """Owns the delegated identity for one session.

    Use :meth:`create` rather than the constructor so that a persisted session
    is restored before the client is handed out.
    """

    def __init__(self, storage: SessionStorage, channel: ProviderChannel | None = None) -> None:
        self._storage = storage
        self._channel = channel
        self._identity: DelegatedIdentity | None = None

    @classmethod
    async def create(cls, storage: SessionStorage, channel: ProviderChannel | None = None) -> AuthClient:
        client = cls(storage, channel)
        await client._restore()
        return client

    async def _restore(self) -> None:
        stored = await self._storage.load()
        if stored is None:
            return
        try:
            identity = DelegatedIdentity(Ed25519Identity.from_pem(stored.pem.encode()), stored.expiration_ns)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            logger.warning("Discarding stored session: %s", exc)
            await self._storage.clear()
            return
        if identity.is_expired():
            logger.info("Stored session for %s has expired", identity.principal)
            await self._storage.clear()
            return
        self._identity = identity

    def get_identity(self) -> Identity:
        """Current identity; anonymous when logged out or expired."""
        if self._identity is None or self._identity.is_expired():
            return AnonymousIdentity()
        return self._identity

    async def is_authenticated(self) -> bool:
        return not self.get_identity().principal.is_anonymous

    async def login(
        self,
        identity_provider: str,
        max_time_to_live_ns: int,
        on_success: Callable[[], None],
        on_error: Callable[[BaseException], None],
    ) -> None:
        """Negotiate a delegation with ``identity_provider``.

        Exactly one of ``on_success`` / ``on_error`` is invoked. The current
        identity is only replaced on success.
        """
        if self._channel is None:
            on_error(ProviderUnavailable("no identity provider channel configured"))
            return

        try:
            granted = await self._channel.authorize(identity_provider)
            delegated = DelegatedIdentity(granted, now_ns() + max_time_to_live_ns)
            await self._storage.save(
                StoredSession(pem=granted.to_pem().decode(), expiration_ns=delegated.expiration_ns)
            )
        except Exception as exc:
            on_error(exc)
            return

        self._identity = delegated
        on_success()

    async def logout(self) -> None:
        self._identity = None
        await self._storage.clear()
