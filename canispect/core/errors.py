"""Error taxonomy for the Canispect client.

Every error raised out of the gateway, transport and session layers is a
:class:`CanispectError`. The underlying failure, when there is one, is kept
both as ``__cause__`` (via ``raise ... from``) and as ``.cause``.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Stable error codes carried by every CanispectError."""

    AUTH_REQUIRED = "AUTH_REQUIRED"
    PROVIDER_REJECTED = "PROVIDER_REJECTED"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    TRANSPORT_UNAVAILABLE = "TRANSPORT_UNAVAILABLE"
    CALL_REJECTED = "CALL_REJECTED"


class CanispectError(Exception):
    """Base exception for Canispect client errors."""

    code: ErrorCode = ErrorCode.TRANSPORT_UNAVAILABLE

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class AuthRequired(CanispectError):
    """The operation needs an authenticated session and none is present."""

    code = ErrorCode.AUTH_REQUIRED

    def __init__(self, message: str = "User must be authenticated", cause: BaseException | None = None) -> None:
        super().__init__(message, cause)


class ProviderRejected(CanispectError):
    """The identity provider refused the login."""

    code = ErrorCode.PROVIDER_REJECTED


class ProviderUnavailable(CanispectError):
    """The identity provider could not be reached."""

    code = ErrorCode.PROVIDER_UNAVAILABLE


class MalformedResponse(CanispectError):
    """A wire value does not match the expected IDL shape."""

    code = ErrorCode.MALFORMED_RESPONSE


class TransportUnavailable(CanispectError):
    """The endpoint is unreachable or the transport could not be built."""

    code = ErrorCode.TRANSPORT_UNAVAILABLE


class CallRejected(CanispectError):
    """The remote service rejected the call."""

    code = ErrorCode.CALL_REJECTED

    def __init__(
        self,
        message: str,
        reject_code: int | None = None,
        method: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, cause)
        self.reject_code = reject_code
        self.method = method
