"""Custom exceptions for the bclient SDK."""

from __future__ import annotations

from typing import Any


class BClientError(Exception):
    """Base class for every error raised by the node and wallet clients."""

    def __init__(
        self,
        message: str,
        *,
        status: int = 0,
        code: str | int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.code = code
        self.details = details

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(status={self.status}, code={self.code!r}, "
            f"message={str(self)!r})"
        )


class TransportError(BClientError):
    """Network-level failure: DNS, refused connection, read/connect timeout."""


class RequestFailed(BClientError):
    """The server answered with a non-2xx status other than 404."""

    def __init__(
        self,
        status: int,
        body: str,
        *,
        message: str | None = None,
        code: str | int | None = None,
    ) -> None:
        super().__init__(message or f"Status code: {status}", status=status, code=code, details=body)
        self.body = body


class RPCError(BClientError):
    """The server rejected a JSON-RPC or socket call with an error reply."""


class AuthError(BClientError):
    """The socket handshake was rejected by the server."""


class Timeout(BClientError, TimeoutError):
    """No correlated response arrived before the call's deadline."""


class ConnectionLost(BClientError):
    """A pending socket call was invalidated by a disconnect or close."""


class QueueOverflow(BClientError):
    """The outbound socket queue was saturated and the message was dropped."""


class Cancelled(BClientError):
    """The caller cancelled a pending socket call."""
