"""Exception taxonomy shared by the relay services.

``ClientError`` subclasses describe problems with what the caller sent or who
the caller is; the router reports them back to the originating connection.
Everything else, ``InfrastructureError`` in particular, propagates to the
transport as a server fault.
"""

from __future__ import annotations


class RelayError(RuntimeError):
    """Base exception for relay failures."""


class ClientError(RelayError):
    """Failure attributable to the caller, reported as an ``error`` push."""


class ValidationError(ClientError):
    """Raised when an inbound body is malformed or fails validation."""


class NicknameTakenError(ClientError):
    """Raised when a nickname is already bound to a live, responsive session."""

    def __init__(self, nickname: str) -> None:
        super().__init__(f"Nickname '{nickname}' is already taken")
        self.nickname = nickname


class UnauthenticatedError(ClientError):
    """Raised when a connection has no nickname bound to it."""

    def __init__(self, connection_id: str) -> None:
        super().__init__("Connection is not bound to a nickname")
        self.connection_id = connection_id


class InfrastructureError(RelayError):
    """Raised when the durable store or push gateway is unavailable."""


class ConnectionGoneError(RelayError):
    """Raised by a push gateway when the target session no longer exists."""

    def __init__(self, connection_id: str) -> None:
        super().__init__(f"Connection {connection_id} is gone")
        self.connection_id = connection_id
