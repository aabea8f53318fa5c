"""HTTP agent and remote client.

The agent speaks the replica's JSON gateway:

    POST {host}/api/v2/canister/{canister_id}/{query|call}
    {"sender": "<principal>", "method_name": "...", "arg": [...], "ingress_expiry": <ns>}

and expects one of::

    {"status": "replied", "reply": {"arg": <value>}}
    {"status": "rejected", "reject_code": 4, "reject_message": "..."}
"""

from __future__ import annotations

import enum
import logging
import time
from typing import Any, Mapping

import httpx

from canispect.core.errors import CallRejected, MalformedResponse, TransportUnavailable
from canispect.core.principal import Principal
from canispect.session.identity import AnonymousIdentity, Identity

logger = logging.getLogger(__name__)

INGRESS_EXPIRY_NS = 4 * 60 * 1_000_000_000


class CallKind(str, enum.Enum):
    QUERY = "query"
    UPDATE = "call"


class HttpAgent:
    """Transport bound to one host and one identity.

    The identity is fixed at construction; build a new agent to change it.
    """

    def __init__(self, host: str, identity: Identity | None, http: httpx.AsyncClient) -> None:
        self.host = host.rstrip("/")
        self._identity: Identity = identity or AnonymousIdentity()
        self._http = http
        self.root_key: bytes | None = None

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def sender(self) -> Principal:
        return self._identity.principal

    async def fetch_root_key(self) -> bytes:
        """Fetch the replica's root verification key.

        Raises:
            TransportUnavailable: replica unreachable or status unreadable
        """
        try:
            resp = await self._http.get(f"{self.host}/api/v2/status")
            resp.raise_for_status()
            root_key = resp.json()["root_key"]
            self.root_key = bytes.fromhex(root_key) if isinstance(root_key, str) else bytes(root_key)
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            raise TransportUnavailable(f"unable to fetch root key from {self.host}: {exc}", cause=exc) from exc
        return self.root_key

    async def query(self, canister_id: Principal, method: str, args: list[Any]) -> Any:
        return await self._submit(CallKind.QUERY, canister_id, method, args)

    async def update(self, canister_id: Principal, method: str, args: list[Any]) -> Any:
        return await self._submit(CallKind.UPDATE, canister_id, method, args)

    async def _submit(self, kind: CallKind, canister_id: Principal, method: str, args: list[Any]) -> Any:
        url = f"{self.host}/api/v2/canister/{canister_id.to_text()}/{kind.value}"
        body = {
            "sender": self.sender.to_text(),
            "method_name": method,
            "arg": args,
            "ingress_expiry": time.time_ns() + INGRESS_EXPIRY_NS,
        }
        logger.debug(
            "%s %s", kind.value, method,
            extra={"method": method, "canister_id": canister_id.to_text(), "principal": self.sender.to_text()},
        )

        try:
            resp = await self._http.post(url, json=body)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransportUnavailable(f"{method} failed: {exc}", cause=exc) from exc

        try:
            envelope = resp.json()
        except ValueError as exc:
            raise MalformedResponse(f"{method} returned a non-JSON body", cause=exc) from exc
        return _unwrap(method, envelope)


def _unwrap(method: str, envelope: Any) -> Any:
    if not isinstance(envelope, dict):
        raise MalformedResponse(f"{method} returned {type(envelope).__name__}, expected an envelope")

    status = envelope.get("status")
    if status == "replied":
        reply = envelope.get("reply")
        if not isinstance(reply, dict) or "arg" not in reply:
            raise MalformedResponse(f"{method} reply has no 'arg'")
        return reply["arg"]
    if status == "rejected":
        raise CallRejected(
            f"{method} rejected: {envelope.get('reject_message', 'no message')}",
            reject_code=envelope.get("reject_code"),
            method=method,
        )
    raise MalformedResponse(f"{method} returned unknown status {status!r}")


class RemoteClient:
    """A service bound to an agent and a method table.

    ``methods`` maps each remote method name to whether it is a query or an
    update call.
    """

    def __init__(self, agent: HttpAgent, canister_id: Principal, methods: Mapping[str, CallKind]) -> None:
        self.agent = agent
        self.canister_id = canister_id
        self._methods = dict(methods)

    async def call(self, method: str, *args: Any) -> Any:
        try:
            kind = self._methods[method]
        except KeyError:
            raise ValueError(f"{method!r} is not an operation of {self.canister_id}") from None
        if kind is CallKind.QUERY:
            return await self.agent.query(self.canister_id, method, list(args))
        return await self.agent.update(self.canister_id, method, list(args))
