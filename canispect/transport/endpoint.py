"""Endpoint resolution.

:func:`resolve_endpoint` is the single place that decides whether calls go to
a local development replica or the public network. It is a pure function of
the :class:`RuntimeContext`.
"""

from __future__ import annotations

import enum
import ipaddress
from dataclasses import dataclass
from urllib.parse import urlsplit

from canispect.core.config import Settings

DEFAULT_LOCAL_REPLICA_PORT = 4943

_LOOPBACK_NAMES = frozenset({"localhost", "localhost.localdomain", "ip6-localhost"})


class EndpointKind(str, enum.Enum):
    LOCAL = "local"
    PUBLIC = "public"


@dataclass(frozen=True)
class RuntimeContext:
    """Where the client believes it is running against."""

    hostname: str
    port: int | None = None
    scheme: str = "https"

    @classmethod
    def from_url(cls, url: str) -> RuntimeContext:
        parts = urlsplit(url)
        return cls(hostname=parts.hostname or "", port=parts.port, scheme=parts.scheme or "https")

    @classmethod
    def from_settings(cls, settings: Settings) -> RuntimeContext:
        return cls.from_url(settings.effective_network_url)

    @property
    def origin(self) -> str:
        host = f"[{self.hostname}]" if ":" in self.hostname else self.hostname
        if self.port is None:
            return f"{self.scheme}://{host}"
        return f"{self.scheme}://{host}:{self.port}"


@dataclass(frozen=True)
class EndpointConfig:
    kind: EndpointKind
    host: str

    @property
    def is_local(self) -> bool:
        return self.kind is EndpointKind.LOCAL

    @property
    def fetch_root_key(self) -> bool:
        """Only local replicas need their root key bootstrapped."""
        return self.is_local


def is_loopback(hostname: str) -> bool:
    name = hostname.strip("[]").lower()
    if name in _LOOPBACK_NAMES or name.endswith(".localhost"):
        return True
    try:
        return ipaddress.ip_address(name).is_loopback
    except ValueError:
        return False


def resolve_endpoint(
    context: RuntimeContext,
    local_replica_port: int = DEFAULT_LOCAL_REPLICA_PORT,
    public_host: str = "https://ic0.app",
) -> EndpointConfig:
    """Map a runtime context to the local replica or the public network."""
    if is_loopback(context.hostname) or context.port == local_replica_port:
        return EndpointConfig(kind=EndpointKind.LOCAL, host=context.origin)
    if context.hostname:
        return EndpointConfig(kind=EndpointKind.PUBLIC, host=context.origin)
    return EndpointConfig(kind=EndpointKind.PUBLIC, host=public_host)
