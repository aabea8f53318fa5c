"""Caller identities.

An identity names the principal that outgoing calls are made as. Three kinds
exist:

- :class:`AnonymousIdentity` — no credential, the anonymous sentinel.
- :class:`Ed25519Identity` — a key pair whose principal is self-authenticating.
- :class:`DelegatedIdentity` — an identity granted by an identity provider for
  a bounded time; once expired the session resolves to anonymous.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from canispect.core.principal import ANONYMOUS_PRINCIPAL, Principal


def now_ns() -> int:
    return time.time_ns()


@runtime_checkable
class Identity(Protocol):
    """Anything that can name the caller of a remote operation."""

    @property
    def principal(self) -> Principal: ...

    @property
    def public_key_der(self) -> bytes | None: ...


class AnonymousIdentity:
    """The identity of an unauthenticated caller."""

    @property
    def principal(self) -> Principal:
        return ANONYMOUS_PRINCIPAL

    @property
    def public_key_der(self) -> None:
        return None

    def __repr__(self) -> str:
        return "AnonymousIdentity()"


class Ed25519Identity:
    """Ed25519 key pair identity."""

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key
        self._public_key_der = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        self._principal = Principal.self_authenticating(self._public_key_der)

    @classmethod
    def generate(cls) -> Ed25519Identity:
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_pem(cls, pem: bytes) -> Ed25519Identity:
        """Load an identity from a PKCS#8 PEM private key.

        Raises:
            ValueError: if the PEM is unreadable or not an Ed25519 key
        """
        key = serialization.load_pem_private_key(pem, password=None)
        if not isinstance(key, Ed25519PrivateKey):
            raise ValueError(f"expected an Ed25519 private key, got {type(key).__name__}")
        return cls(key)

    def to_pem(self) -> bytes:
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    @property
    def principal(self) -> Principal:
        return self._principal

    @property
    def public_key_der(self) -> bytes:
        return self._public_key_der

    def __repr__(self) -> str:
        return f"Ed25519Identity({self._principal.to_text()!r})"


class DelegatedIdentity:
    """An identity granted by a provider until ``expiration_ns``."""

    def __init__(self, inner: Ed25519Identity, expiration_ns: int) -> None:
        self.inner = inner
        self.expiration_ns = expiration_ns

    def is_expired(self, at_ns: int | None = None) -> bool:
        return (now_ns() if at_ns is None else at_ns) >= self.expiration_ns

    @property
    def principal(self) -> Principal:
        return self.inner.principal

    @property
    def public_key_der(self) -> bytes:
        return self.inner.public_key_der

    def __repr__(self) -> str:
        return f"DelegatedIdentity({self.principal.to_text()!r}, expiration_ns={self.expiration_ns})"
