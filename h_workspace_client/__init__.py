"""Client session manager for h-workspace collaborative workspaces."""

__version__ = "0.1.0"

from .bridge import MessageBridge
from .constants import (
    AUTH_ERROR_EVENT,
    AUTH_REQUEST_EVENT,
    AUTH_SUCCESS_EVENT,
    MESSAGE_EVENT,
    ROOM_DESTROYED_EVENT,
    Role,
    WorkspaceEvent,
)
from .errors import (
    AuthenticationError,
    ConnectionTimeoutError,
    HandshakeError,
    InvalidCodeError,
    InvalidCredentialError,
    InvalidOptionError,
    NotConnectedError,
    ResponseError,
    SessionTerminatedError,
    UnauthorizedError,
    WorkspaceClientError,
    WorkspaceConnectionError,
    WorkspaceNotFoundError,
)
from .events import EventEmitter
from .http import WorkspaceHttpClient
from .negotiator import negotiate
from .protocol import (
    AnonymousIdentity,
    AuthenticatedIdentity,
    build_auth_request,
    normalize_server_uri,
)
from .session import ConnectionState, SessionEvent, TransportEvent, WorkspaceSession
from .transport import Channel, connect_channel, connect_websocket

__all__ = [
    "AUTH_ERROR_EVENT",
    "AUTH_REQUEST_EVENT",
    "AUTH_SUCCESS_EVENT",
    "MESSAGE_EVENT",
    "ROOM_DESTROYED_EVENT",
    "AnonymousIdentity",
    "AuthenticatedIdentity",
    "AuthenticationError",
    "Channel",
    "ConnectionState",
    "ConnectionTimeoutError",
    "EventEmitter",
    "HandshakeError",
    "InvalidCodeError",
    "InvalidCredentialError",
    "InvalidOptionError",
    "MessageBridge",
    "NotConnectedError",
    "ResponseError",
    "Role",
    "SessionEvent",
    "SessionTerminatedError",
    "TransportEvent",
    "UnauthorizedError",
    "WorkspaceClientError",
    "WorkspaceConnectionError",
    "WorkspaceEvent",
    "WorkspaceHttpClient",
    "WorkspaceNotFoundError",
    "WorkspaceSession",
    "__version__",
    "build_auth_request",
    "connect_channel",
    "connect_websocket",
    "negotiate",
]
