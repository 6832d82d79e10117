"""Event channel over a reconnecting websocket."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from typing import Any

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..constants import DEFAULT_CHANNEL_PATH
from ..errors import ConnectionTimeoutError, NotConnectedError, WorkspaceConnectionError
from ..events import EventEmitter, EventHandler
from ..protocol import build_frame, parse_frame
from .ws import connect_websocket

_LOGGER = logging.getLogger(__name__)


class Channel:
    """Bidirectional event channel to the workspace server.

    Inbound JSON frames are dispatched as local events named after the
    frame's ``event`` field. The channel also dispatches its own transport
    events: ``connect``, ``connect_error``, ``connect_timeout``, ``error``,
    ``disconnect``, ``reconnect``, ``reconnect_attempt``, ``reconnecting``,
    ``reconnect_error`` and ``reconnect_failed``.

    A failed first attempt is terminal. Once connected, every drop is
    followed by reconnection attempts with exponential backoff until one
    succeeds, attempts run out, or the channel is closed. Each successful
    connection bumps ``generation`` and assigns a fresh ``id``.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        path: str = DEFAULT_CHANNEL_PATH,
        timeout: float = 20.0,
        ping_interval: float | None = 20,
        reconnection: bool = True,
        reconnection_attempts: int | None = None,
        reconnection_delay: float = 1.0,
        reconnection_delay_max: float = 5.0,
        randomization_factor: float = 0.5,
    ) -> None:
        """Initialize channel.

        Args:
            endpoint: Scheme and host, e.g. ``wss://example.com``
            path: Routing path of the websocket endpoint
            timeout: Deadline for each connection attempt (seconds)
            ping_interval: Keepalive ping interval (seconds)
            reconnection: Whether to reconnect after a drop
            reconnection_attempts: Maximum consecutive attempts (None = unlimited)
            reconnection_delay: Base retry delay (seconds)
            reconnection_delay_max: Maximum retry delay (seconds)
            randomization_factor: Jitter applied to each retry delay (0..1)
        """
        self.endpoint = endpoint
        self.path = path
        self.url = endpoint + path

        self._timeout = timeout
        self._ping_interval = ping_interval
        self._reconnection = reconnection
        self._reconnection_attempts = reconnection_attempts
        self._reconnection_delay = reconnection_delay
        self._reconnection_delay_max = reconnection_delay_max
        self._randomization_factor = randomization_factor

        self.id: str | None = None
        self.generation = 0

        self._events = EventEmitter()
        self._ws: ClientConnection | None = None
        self._outbox: asyncio.Queue[str] | None = None
        self._run_task: asyncio.Task[None] | None = None
        self._closing = False

    @property
    def connected(self) -> bool:
        """Check if a websocket connection is currently live."""
        return self._ws is not None

    # -------------------------------------------------------------------------
    # Public API: Listeners
    # -------------------------------------------------------------------------

    def on(self, event: str, handler: EventHandler) -> EventHandler:
        return self._events.on(event, handler)

    def once(self, event: str, handler: EventHandler) -> EventHandler:
        return self._events.once(event, handler)

    def off(self, event: str, handler: EventHandler | None = None) -> None:
        self._events.off(event, handler)

    def listener_count(self, event: str) -> int:
        return self._events.listener_count(event)

    # -------------------------------------------------------------------------
    # Public API: Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> None:
        """Start connecting in the background.

        Outcome is reported through ``connect`` or one of the failure events.
        """
        if self._run_task is not None:
            raise RuntimeError("Channel already opened")
        self._run_task = asyncio.create_task(self._run())

    def emit(self, event: str, data: Any = None) -> None:
        """Queue one event frame for sending.

        Raises:
            NotConnectedError: If no connection is live
        """
        if self._ws is None or self._outbox is None:
            raise NotConnectedError("Channel is not connected")
        self._outbox.put_nowait(build_frame(event, data))

    async def close(self) -> None:
        """Close the connection and stop reconnecting."""
        self._closing = True
        ws = self._ws
        task = self._run_task

        if ws is not None:
            try:
                await asyncio.wait_for(ws.close(), timeout=2.0)
            except TimeoutError:
                _LOGGER.warning("[%s] WebSocket close timed out", self.url)

        if task is None or task.done() or task is asyncio.current_task():
            return
        if ws is None:
            # Waiting on a backoff timer or a pending connection attempt
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def disconnect(self) -> asyncio.Task[None]:
        """Schedule ``close()`` without waiting for it."""
        return asyncio.ensure_future(self.close())

    # -------------------------------------------------------------------------
    # Internal: Connection loop
    # -------------------------------------------------------------------------

    async def _run(self) -> None:
        attempts = 0

        while not self._closing:
            reconnecting = self.generation > 0

            if reconnecting:
                if (
                    self._reconnection_attempts is not None
                    and attempts >= self._reconnection_attempts
                ):
                    _LOGGER.warning(
                        "[%s] Giving up after %d reconnect attempts", self.url, attempts
                    )
                    self._events.dispatch("reconnect_failed")
                    return

                attempts += 1
                delay = self._reconnect_delay(attempts)
                _LOGGER.info(
                    "[%s] Reconnecting in %.2fs (attempt %d)", self.url, delay, attempts
                )
                self._events.dispatch("reconnect_attempt", attempts)
                self._events.dispatch("reconnecting", attempts)
                await asyncio.sleep(delay)
                if self._closing:
                    return

            try:
                ws = await connect_websocket(
                    self.url,
                    ping_interval=self._ping_interval,
                    timeout=self._timeout,
                )
            except ConnectionTimeoutError as err:
                if not reconnecting:
                    self._events.dispatch("connect_timeout", err)
                    return
                self._events.dispatch("reconnect_error", err)
                continue
            except WorkspaceConnectionError as err:
                if not reconnecting:
                    self._events.dispatch("connect_error", err)
                    return
                self._events.dispatch("reconnect_error", err)
                continue
            except Exception as err:
                _LOGGER.exception("[%s] Unexpected connection error", self.url)
                self._events.dispatch("error", err)
                if not reconnecting:
                    return
                continue

            await self._serve(ws, attempts)
            attempts = 0

            if not self._reconnection:
                return

    async def _serve(self, ws: ClientConnection, attempts: int) -> None:
        """Pump inbound frames for one connection until it drops."""
        self.generation += 1
        self.id = str(ws.id)
        self._ws = ws
        self._outbox = asyncio.Queue()
        writer = asyncio.create_task(self._write_loop(ws, self._outbox))
        reason = "transport close"
        message_count = 0

        _LOGGER.info(
            "[%s] Connected (id=%s, generation=%d)", self.url, self.id, self.generation
        )

        try:
            self._events.dispatch("connect")
            if self.generation > 1:
                self._events.dispatch("reconnect", attempts)

            async for raw in ws:
                if isinstance(raw, bytes):
                    continue
                try:
                    event, data = parse_frame(raw)
                except ValueError as err:
                    _LOGGER.warning("[%s] Invalid frame: %s", self.url, err)
                    continue
                message_count += 1
                self._events.dispatch(event, data)

        except ConnectionClosed:
            reason = "transport close"
        except WebSocketException as err:
            _LOGGER.warning("[%s] WebSocket error: %s", self.url, err)
            reason = "transport error"
            self._events.dispatch("error", err)
        except Exception as err:
            _LOGGER.exception("[%s] Unexpected reader error: %s", self.url, err)
            reason = "transport error"
            self._events.dispatch("error", err)
        finally:
            writer.cancel()
            self._ws = None
            self._outbox = None
            self.id = None
            if self._closing:
                reason = "io client disconnect"
            _LOGGER.info(
                "[%s] Disconnected: %s (%d frames)", self.url, reason, message_count
            )
            self._events.dispatch("disconnect", reason)

    async def _write_loop(self, ws: ClientConnection, outbox: asyncio.Queue[str]) -> None:
        while True:
            frame = await outbox.get()
            try:
                await ws.send(frame)
            except ConnectionClosed:
                return
            except WebSocketException as err:
                _LOGGER.warning("[%s] Failed to send frame: %s", self.url, err)
                return

    def _reconnect_delay(self, attempts: int) -> float:
        delay = self._reconnection_delay * (2 ** (attempts - 1))
        if self._randomization_factor:
            delay += random.uniform(-1, 1) * self._randomization_factor * delay
        return max(0.0, min(delay, self._reconnection_delay_max))
