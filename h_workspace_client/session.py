"""High-level session manager for h-workspace communication.

This module provides the client API used by messaging runtimes and
workspace tooling. It handles:
- Channel connection and authentication
- Connection state machine and write gate
- Re-authentication after transport reconnects
- Workspace lifecycle events (updates, room destruction)
- Message routing to and from the messaging runtime
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from .bridge import MessageBridge, MessageHandler
from .constants import ROOM_DESTROYED_EVENT, WorkspaceEvent
from .errors import (
    SessionTerminatedError,
    UnauthorizedError,
    WorkspaceClientError,
)
from .events import EventEmitter, EventHandler
from .http import WorkspaceHttpClient
from .negotiator import negotiate
from .protocol import (
    AnonymousIdentity,
    AuthenticatedIdentity,
    Identity,
    normalize_server_uri,
)
from .transport.connector import connect_channel

if TYPE_CHECKING:
    import aiohttp

    from .transport.channel import Channel

_LOGGER = logging.getLogger(__name__)

Connector = Callable[..., Awaitable["Channel"]]


class ConnectionState(StrEnum):
    """Session lifecycle states."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    ACTIVE = "active"
    DEGRADED = "degraded"
    TERMINATED = "terminated"


class SessionEvent(StrEnum):
    """Events a session owner can subscribe to."""

    READY = "ready"
    DISCONNECTED = "disconnected"
    REAUTHENTICATED = "reauthenticated"
    REAUTHENTICATION_FAILED = "reauthentication-failed"
    DEGRADED_STARTED = "degraded-started"
    DEGRADED_ENDED = "degraded-ended"
    TERMINATED = "terminated"
    STATE_CHANGED = "state-changed"
    TRANSPORT = "transport"


@dataclass(frozen=True, slots=True)
class TransportEvent:
    """Leveled observation of a channel transport event."""

    name: str
    level: int
    payload: Any = None


_TRANSPORT_LEVELS: dict[str, int] = {
    "connect": logging.DEBUG,
    "disconnect": logging.WARNING,
    "error": logging.ERROR,
    "reconnect": logging.INFO,
    "reconnect_attempt": logging.INFO,
    "reconnecting": logging.DEBUG,
    "reconnect_error": logging.WARNING,
    "reconnect_failed": logging.ERROR,
}


class WorkspaceSession:
    """Client session with an h-workspace server.

    Usage:
        session = WorkspaceSession.anonymous("https://host/h-workspace", "ABC123")
        session.subscribe("terminated", on_terminated)
        session.set_message_handler(runtime.handle_message)
        await session.connect()
        session.send_message({"type": "ping"})
        await session.disconnect()
    """

    def __init__(
        self,
        server_uri: str,
        identity: Identity,
        *,
        message_handler: MessageHandler | None = None,
        connector: Connector = connect_channel,
        connect_timeout: float = 20.0,
        ping_interval: float | None = 20,
        reconnection: bool = True,
        reconnection_attempts: int | None = None,
        reconnection_delay: float = 1.0,
        reconnection_delay_max: float = 5.0,
        randomization_factor: float = 0.5,
    ) -> None:
        """Initialize session.

        Args:
            server_uri: Workspace server address
            identity: Anonymous or authenticated identity
            message_handler: Messaging runtime's inbound message handler
            connector: Coroutine opening a channel for a server address
            connect_timeout: Deadline for each transport attempt (seconds)
            ping_interval: Keepalive ping interval (seconds)
            reconnection: Whether the channel reconnects after drops
            reconnection_attempts: Maximum consecutive reconnect attempts
            reconnection_delay: Base reconnect delay (seconds)
            reconnection_delay_max: Maximum reconnect delay (seconds)
            randomization_factor: Reconnect delay jitter (0..1)
        """
        if not isinstance(identity, (AnonymousIdentity, AuthenticatedIdentity)):
            raise TypeError("identity must be an AnonymousIdentity or AuthenticatedIdentity")

        self.server_uri = normalize_server_uri(server_uri)
        self.identity = identity

        self._connector = connector
        self._channel_options: dict[str, Any] = {
            "timeout": connect_timeout,
            "ping_interval": ping_interval,
            "reconnection": reconnection,
            "reconnection_attempts": reconnection_attempts,
            "reconnection_delay": reconnection_delay,
            "reconnection_delay_max": reconnection_delay_max,
            "randomization_factor": randomization_factor,
        }

        # Session state
        self._channel: Channel | None = None
        self._session_id: str | None = None
        self._connection_state = ConnectionState.UNAUTHENTICATED
        self._write_gate = False
        self._authenticated_generation: int | None = None
        self._update_in_progress = False
        self._channel_handlers: dict[str, EventHandler] = {}

        # Re-authentication
        self._reauth_task: asyncio.Task[None] | None = None
        self._reauth_generation: int | None = None

        self._events = EventEmitter()
        self._bridge = MessageBridge(message_handler, is_writable=lambda: self.writable)

    @classmethod
    def anonymous(
        cls, server_uri: str, access_code: str, **kwargs: Any
    ) -> WorkspaceSession:
        """Create a session authenticating with an access code only."""
        return cls(server_uri, AnonymousIdentity(access_code), **kwargs)

    @classmethod
    def authenticated(
        cls, server_uri: str, access_code: str, credential: str, **kwargs: Any
    ) -> WorkspaceSession:
        """Create a session authenticating with a code and bearer credential."""
        return cls(server_uri, AuthenticatedIdentity(access_code, credential), **kwargs)

    # -------------------------------------------------------------------------
    # Public API: State
    # -------------------------------------------------------------------------

    @property
    def access_code(self) -> str:
        return self.identity.access_code

    @property
    def credential(self) -> str | None:
        return self.identity.credential

    @property
    def channel(self) -> Channel | None:
        return self._channel

    @property
    def session_id(self) -> str | None:
        """Channel-assigned identifier, available once authenticated."""
        return self._session_id

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection_state

    @property
    def write_gate(self) -> bool:
        return self._write_gate

    @property
    def writable(self) -> bool:
        """Check if outbound messages are currently permitted."""
        return self._connection_state is ConnectionState.ACTIVE and self._write_gate

    @property
    def is_terminated(self) -> bool:
        return self._connection_state is ConnectionState.TERMINATED

    # -------------------------------------------------------------------------
    # Public API: Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, event: str, handler: EventHandler) -> EventHandler:
        """Register ``handler`` for a session event or forwarded lifecycle event."""
        return self._events.on(event, handler)

    def unsubscribe(self, event: str, handler: EventHandler | None = None) -> None:
        self._events.off(event, handler)

    def set_message_handler(self, handler: MessageHandler | None) -> None:
        """Register the messaging runtime's inbound message handler."""
        self._bridge.set_handler(handler)

    # -------------------------------------------------------------------------
    # Public API: Connection Management
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Connect the channel and authenticate.

        Raises:
            WorkspaceConnectionError: Transport could not be established
            ConnectionTimeoutError: Transport attempt timed out
            AuthenticationError: Server rejected the identity
            SessionTerminatedError: Session was already terminated
        """
        if self.is_terminated:
            raise SessionTerminatedError("Session is terminated; create a new session")
        if self._connection_state is not ConnectionState.UNAUTHENTICATED:
            raise WorkspaceClientError(
                f"Cannot connect while {self._connection_state.value}"
            )

        _LOGGER.info(
            "[%s] Connecting as %s", self.server_uri, self.identity.role.value
        )

        channel = await self._connector(self.server_uri, **self._channel_options)
        self._channel = channel
        self._transition(ConnectionState.AUTHENTICATING)

        activated = False

        def _on_authenticated() -> None:
            nonlocal activated
            if self.is_terminated:
                # disconnect() ran while the handshake was pending
                return
            activated = True
            self._activate(channel)

        try:
            await negotiate(channel, self.identity, on_success=_on_authenticated)
        except BaseException:
            self._unlisten(channel)
            self._bridge.detach()
            self._channel = None
            self._transition(ConnectionState.UNAUTHENTICATED)
            await channel.close()
            raise

        if not activated:
            await channel.close()
            raise SessionTerminatedError("Session was terminated while connecting")

    async def disconnect(self) -> None:
        """Close the channel and terminate the session."""
        channel = self._channel
        already_terminated = self.is_terminated

        _LOGGER.info("[%s] Disconnecting session", self.server_uri)
        self._terminate()

        if channel is not None:
            self._unlisten(channel)
            self._bridge.detach()
            await channel.close()

        if not already_terminated:
            self._events.dispatch(SessionEvent.TERMINATED, None)

    # -------------------------------------------------------------------------
    # Public API: Messaging runtime contract
    # -------------------------------------------------------------------------

    def send_message(self, message: Any) -> None:
        """Send an application message.

        Raises:
            NotConnectedError: If the session is not currently writable
        """
        self._bridge.send(message)

    def control_plane(self, http_session: aiohttp.ClientSession) -> WorkspaceHttpClient:
        """Return a control-plane client bound to this session's credential.

        Raises:
            UnauthorizedError: If the session identity is anonymous
        """
        if not isinstance(self.identity, AuthenticatedIdentity):
            raise UnauthorizedError("Control plane requires an authenticated identity")
        return WorkspaceHttpClient(
            http_session, self.server_uri, token=self.identity.credential
        )

    # -------------------------------------------------------------------------
    # Internal: State Machine
    # -------------------------------------------------------------------------

    def _transition(self, state: ConnectionState) -> None:
        """Move to ``state``; the only mutator of state and write gate."""
        previous = self._connection_state
        if previous is ConnectionState.TERMINATED:
            return

        if state is ConnectionState.UNAUTHENTICATED:
            self._session_id = None
        self._connection_state = state
        self._write_gate = state is ConnectionState.ACTIVE

        if previous is not state:
            _LOGGER.debug(
                "[%s] State: %s → %s", self.server_uri, previous.value, state.value
            )
            self._events.dispatch(SessionEvent.STATE_CHANGED, state)

    def _activate(self, channel: Channel) -> None:
        self._session_id = channel.id
        self._authenticated_generation = channel.generation
        self._bridge.attach(channel)
        self._listen(channel)
        self._transition(ConnectionState.ACTIVE)

        _LOGGER.info(
            "[%s] Authenticated (session %s)", self.server_uri, self._session_id
        )
        self._events.dispatch(SessionEvent.READY, self._session_id)

    def _terminate(self) -> None:
        self._transition(ConnectionState.TERMINATED)
        task = self._reauth_task
        if task is not None and not task.done():
            task.cancel()
        self._reauth_task = None

    def _listen(self, channel: Channel) -> None:
        handlers: dict[str, EventHandler] = {
            "disconnect": self._on_channel_disconnect,
            "reconnect": self._on_channel_reconnect,
            ROOM_DESTROYED_EVENT: self._on_room_destroyed,
            WorkspaceEvent.UPDATE_STARTED.value: self._on_update_started,
            WorkspaceEvent.UPDATE_FINISHED.value: functools.partial(
                self._on_update_ended, WorkspaceEvent.UPDATE_FINISHED.value
            ),
            WorkspaceEvent.UPDATE_FAILED.value: functools.partial(
                self._on_update_ended, WorkspaceEvent.UPDATE_FAILED.value
            ),
        }
        for name in _TRANSPORT_LEVELS:
            if name not in handlers:
                handlers[name] = functools.partial(self._report_transport, name)

        for event, handler in handlers.items():
            channel.on(event, handler)
        self._channel_handlers = handlers

    def _unlisten(self, channel: Channel) -> None:
        for event, handler in self._channel_handlers.items():
            channel.off(event, handler)
        self._channel_handlers = {}

    def _is_stale(self, channel: Channel, generation: int) -> bool:
        return (
            self.is_terminated
            or channel is not self._channel
            or channel.generation != generation
        )

    # -------------------------------------------------------------------------
    # Internal: Transport Handlers
    # -------------------------------------------------------------------------

    def _report_transport(self, name: str, payload: Any = None) -> None:
        level = _TRANSPORT_LEVELS.get(name, logging.DEBUG)
        _LOGGER.log(level, "[%s] Transport %s: %s", self.server_uri, name, payload)
        self._events.dispatch(
            SessionEvent.TRANSPORT, TransportEvent(name, level, payload)
        )

    def _on_channel_disconnect(self, reason: Any = None) -> None:
        self._report_transport("disconnect", reason)
        if self.is_terminated:
            return
        self._transition(ConnectionState.DEGRADED)
        self._events.dispatch(SessionEvent.DISCONNECTED, reason)

    def _on_channel_reconnect(self, attempts: Any = None) -> None:
        self._report_transport("reconnect", attempts)
        channel = self._channel
        if self.is_terminated or channel is None:
            return

        generation = channel.generation
        task = self._reauth_task
        if task is not None and not task.done():
            if self._reauth_generation == generation:
                _LOGGER.debug(
                    "[%s] Re-authentication already pending for generation %d",
                    self.server_uri,
                    generation,
                )
                return
            task.cancel()

        self._transition(ConnectionState.AUTHENTICATING)
        self._reauth_generation = generation
        self._reauth_task = asyncio.create_task(
            self._reauthenticate(channel, generation)
        )

    async def _reauthenticate(self, channel: Channel, generation: int) -> None:
        """Re-run the handshake after a reconnect; failures become events."""
        try:
            await negotiate(
                channel,
                self.identity,
                on_success=functools.partial(
                    self._on_reauthenticated, channel, generation
                ),
            )
        except asyncio.CancelledError:
            _LOGGER.debug(
                "[%s] Re-authentication for generation %d superseded",
                self.server_uri,
                generation,
            )
            raise
        except WorkspaceClientError as err:
            if self._is_stale(channel, generation):
                return
            _LOGGER.warning("[%s] Re-authentication failed: %s", self.server_uri, err)
            self._transition(ConnectionState.DEGRADED)
            self._events.dispatch(SessionEvent.REAUTHENTICATION_FAILED, err)

    def _on_reauthenticated(self, channel: Channel, generation: int) -> None:
        if self._is_stale(channel, generation):
            return

        self._session_id = channel.id
        self._authenticated_generation = generation
        if self._update_in_progress:
            self._transition(ConnectionState.DEGRADED)
        else:
            self._transition(ConnectionState.ACTIVE)
        _LOGGER.info(
            "[%s] Re-authenticated (session %s)", self.server_uri, self._session_id
        )
        self._events.dispatch(SessionEvent.REAUTHENTICATED, self._session_id)

    # -------------------------------------------------------------------------
    # Internal: Workspace Lifecycle Handlers
    # -------------------------------------------------------------------------

    def _on_room_destroyed(self, payload: Any = None) -> None:
        if self.is_terminated:
            return
        _LOGGER.warning("[%s] Workspace room destroyed", self.server_uri)
        self._terminate()
        self._events.dispatch(ROOM_DESTROYED_EVENT, payload)
        self._events.dispatch(SessionEvent.TERMINATED, payload)

    def _on_update_started(self, payload: Any = None) -> None:
        if self.is_terminated:
            return
        self._update_in_progress = True
        if self._connection_state is ConnectionState.ACTIVE:
            self._transition(ConnectionState.DEGRADED)
        _LOGGER.info("[%s] Workspace update started", self.server_uri)
        self._events.dispatch(WorkspaceEvent.UPDATE_STARTED.value, payload)
        self._events.dispatch(SessionEvent.DEGRADED_STARTED, payload)

    def _on_update_ended(self, event: str, payload: Any = None) -> None:
        if self.is_terminated:
            return
        self._update_in_progress = False
        channel = self._channel
        if (
            self._connection_state is ConnectionState.DEGRADED
            and channel is not None
            and channel.connected
            and self._authenticated_generation == channel.generation
        ):
            self._transition(ConnectionState.ACTIVE)
        _LOGGER.info("[%s] Workspace update ended (%s)", self.server_uri, event)
        self._events.dispatch(event, payload)
        self._events.dispatch(SessionEvent.DEGRADED_ENDED, payload)
