"""Client error types for h-workspace interactions."""

from __future__ import annotations

from typing import Any


class WorkspaceClientError(Exception):
    """Base error for h-workspace client failures."""


class WorkspaceConnectionError(WorkspaceClientError):
    """Transport connection to the workspace server failed."""


class ConnectionTimeoutError(WorkspaceConnectionError):
    """Transport connection attempt exceeded its deadline."""


class HandshakeError(WorkspaceConnectionError):
    """WebSocket handshake failed.

    ``status`` holds the HTTP status when the server refused the upgrade.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class NotConnectedError(WorkspaceClientError):
    """Outbound message attempted while the session is not writable."""


class SessionTerminatedError(WorkspaceClientError):
    """Operation attempted on a terminated session."""


class InvalidOptionError(WorkspaceClientError, ValueError):
    """A required option is missing or invalid."""

    def __init__(self, option: str, kind: str, message: str) -> None:
        super().__init__(message)
        self.option = option
        self.kind = kind


class ResponseError(WorkspaceClientError):
    """HTTP response error from the control plane."""

    def __init__(
        self, status: int, message: str, error: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message)
        self.status = status
        self.error = error


class AuthenticationError(WorkspaceClientError):
    """Authentication handshake rejected by the server.

    The raw server payload, when any, is kept on ``payload``.
    """

    def __init__(self, message: str = "authentication failed", payload: Any = None):
        super().__init__(message)
        self.payload = payload


class InvalidCodeError(AuthenticationError):
    """The access code does not match any workspace room."""


class UnauthorizedError(AuthenticationError):
    """The request is missing a credential or the credential was refused."""


class InvalidCredentialError(AuthenticationError):
    """The bearer credential is malformed or expired."""


class WorkspaceNotFoundError(AuthenticationError):
    """The workspace backing the access code does not exist."""


AUTHENTICATION_ERRORS: dict[str, type[AuthenticationError]] = {
    "AuthenticationError": AuthenticationError,
    "InvalidCode": InvalidCodeError,
    "InvalidCodeError": InvalidCodeError,
    "Unauthorized": UnauthorizedError,
    "InvalidToken": InvalidCredentialError,
    "InvalidCredential": InvalidCredentialError,
    "WorkspaceNotFound": WorkspaceNotFoundError,
    "NotFound": WorkspaceNotFoundError,
}


def authentication_error_from_payload(payload: Any) -> AuthenticationError:
    """Map a server-supplied auth error payload to a typed error.

    Unknown names and malformed payloads fall back to the generic
    ``AuthenticationError``.
    """
    name: Any = None
    message = "authentication failed"

    if isinstance(payload, dict):
        name = payload.get("name")
        if isinstance(payload.get("message"), str) and payload["message"]:
            message = payload["message"]
    elif isinstance(payload, str) and payload:
        name = payload

    error_cls = AuthenticationError
    if isinstance(name, str):
        error_cls = AUTHENTICATION_ERRORS.get(name, AuthenticationError)
    return error_cls(message, payload=payload)
