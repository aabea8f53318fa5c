"""Identity-provider channels.

A channel carries one login negotiation to an identity provider and returns
the granted identity. Failures are reported as :class:`ProviderRejected`
(the provider answered "no") or :class:`ProviderUnavailable` (the provider
could not be reached).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from cryptography.exceptions import UnsupportedAlgorithm

from canispect.core.errors import ProviderRejected, ProviderUnavailable
from canispect.session.identity import Ed25519Identity

logger = logging.getLogger(__name__)


class ProviderChannel(Protocol):
    async def authorize(self, provider_url: str) -> Ed25519Identity: ...


class PemFileChannel:
    """Provider channel backed by a local Ed25519 PEM key file.

    Mirrors what a developer identity does on a local replica: the key file is
    the credential, so "negotiation" means reading and validating it.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    async def authorize(self, provider_url: str) -> Ed25519Identity:
        logger.debug("Authorizing against %s with key file %s", provider_url, self.path)
        try:
            pem = self.path.read_bytes()
        except OSError as exc:
            raise ProviderUnavailable(f"cannot read identity file {self.path}: {exc}", cause=exc) from exc

        try:
            return Ed25519Identity.from_pem(pem)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise ProviderRejected(f"identity file {self.path} is not a usable Ed25519 key", cause=exc) from exc
