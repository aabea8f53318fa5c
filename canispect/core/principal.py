"""Principal identifiers and their canonical textual form.

A principal is an opaque byte string of at most 29 bytes. Its textual form is
the lowercase base32 encoding (no padding) of ``crc32(raw) || raw``, split
into groups of five characters joined by dashes::

    >>> Principal.anonymous().to_text()
    '2vxsx-fae'
"""

from __future__ import annotations

import base64
import hashlib
import zlib
from dataclasses import dataclass
from typing import Any

from pydantic_core import core_schema

MAX_LENGTH_IN_BYTES = 29
_CRC_LENGTH_IN_BYTES = 4

_ANONYMOUS_SUFFIX = 0x04
_SELF_AUTHENTICATING_SUFFIX = 0x02


class PrincipalError(ValueError):
    """Raised for invalid textual or binary principals."""


@dataclass(frozen=True)
class Principal:
    """Immutable principal value object."""

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) > MAX_LENGTH_IN_BYTES:
            raise PrincipalError(f"principal is {len(self.raw)} bytes, max is {MAX_LENGTH_IN_BYTES}")

    # ── Constructors ─────────────────────────────────────────────────────

    @classmethod
    def anonymous(cls) -> Principal:
        return cls(bytes([_ANONYMOUS_SUFFIX]))

    @classmethod
    def management_canister(cls) -> Principal:
        return cls(b"")

    @classmethod
    def self_authenticating(cls, der_public_key: bytes) -> Principal:
        """Derive the principal owned by a DER-encoded public key."""
        digest = hashlib.sha224(der_public_key).digest()
        return cls(digest + bytes([_SELF_AUTHENTICATING_SUFFIX]))

    @classmethod
    def from_text(cls, text: str) -> Principal:
        """Parse a textual principal, verifying checksum and canonical form."""
        compact = text.replace("-", "").upper()
        padded = compact + "=" * (-len(compact) % 8)
        try:
            decoded = base64.b32decode(padded)
        except ValueError as exc:
            raise PrincipalError(f"invalid principal text {text!r}") from exc
        if len(decoded) < _CRC_LENGTH_IN_BYTES:
            raise PrincipalError(f"principal text {text!r} is too short")

        principal = cls(decoded[_CRC_LENGTH_IN_BYTES:])
        if principal.to_text() != text:
            raise PrincipalError(f"principal text {text!r} is not canonical or has a bad checksum")
        return principal

    # ── Encoding ─────────────────────────────────────────────────────────

    def to_text(self) -> str:
        checksum = zlib.crc32(self.raw).to_bytes(_CRC_LENGTH_IN_BYTES, "big")
        encoded = base64.b32encode(checksum + self.raw).decode("ascii").lower().rstrip("=")
        return "-".join(encoded[i : i + 5] for i in range(0, len(encoded), 5))

    @property
    def is_anonymous(self) -> bool:
        return self.raw == bytes([_ANONYMOUS_SUFFIX])

    def __str__(self) -> str:
        return self.to_text()

    def __repr__(self) -> str:
        return f"Principal({self.to_text()!r})"

    # ── pydantic integration ─────────────────────────────────────────────

    @classmethod
    def _coerce(cls, value: Any) -> Principal:
        if isinstance(value, Principal):
            return value
        if isinstance(value, str):
            return cls.from_text(value)
        raise PrincipalError(f"expected a principal, got {type(value).__name__}")

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._coerce,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )


ANONYMOUS_PRINCIPAL = Principal.anonymous()
