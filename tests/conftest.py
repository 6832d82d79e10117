"""Pytest configuration and fixtures for h_workspace_client tests."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from h_workspace_client.constants import AUTH_REQUEST_EVENT
from h_workspace_client.errors import NotConnectedError
from h_workspace_client.events import EventEmitter


class FakeChannel:
    """In-memory stand-in for a connected Channel.

    ``trigger`` plays the server or transport side. ``respond_to_auth`` makes
    the fake answer every authentication request on the next loop turn.
    """

    def __init__(
        self,
        endpoint: str = "ws://workspace.test",
        *,
        path: str = "/ws",
        channel_id: str = "sock-1",
        **options: Any,
    ) -> None:
        self.endpoint = endpoint
        self.path = path
        self.options = options
        self.id: str | None = channel_id
        self.generation = 1
        self.connected = True
        self.opened = False
        self.closed = False
        self.emitted: list[tuple[str, Any]] = []
        self.on_open: Callable[[FakeChannel], None] | None = None
        self._auth_reply: tuple[str, Any] | None = None
        self._auth_follow_ups: tuple[tuple[str, Any], ...] = ()
        self._events = EventEmitter()

    def on(self, event: str, handler: Callable[..., Any]) -> Callable[..., Any]:
        return self._events.on(event, handler)

    def once(self, event: str, handler: Callable[..., Any]) -> Callable[..., Any]:
        return self._events.once(event, handler)

    def off(self, event: str, handler: Callable[..., Any] | None = None) -> None:
        self._events.off(event, handler)

    def listener_count(self, event: str) -> int:
        return self._events.listener_count(event)

    def open(self) -> None:
        self.opened = True
        if self.on_open is not None:
            self.on_open(self)

    def emit(self, event: str, data: Any = None) -> None:
        if not self.connected:
            raise NotConnectedError("Channel is not connected")
        self.emitted.append((event, data))
        if event == AUTH_REQUEST_EVENT and self._auth_reply is not None:
            asyncio.get_running_loop().call_soon(
                self._reply, self._auth_reply, self._auth_follow_ups
            )

    async def close(self) -> None:
        self.closed = True
        self.connected = False

    def respond_to_auth(
        self, event: str | None, payload: Any = None, *follow_ups: tuple[str, Any]
    ) -> None:
        """Answer auth requests; ``follow_ups`` arrive in the same read."""
        self._auth_reply = None if event is None else (event, payload)
        self._auth_follow_ups = follow_ups

    def _reply(
        self, reply: tuple[str, Any], follow_ups: tuple[tuple[str, Any], ...]
    ) -> None:
        self.trigger(*reply)
        for event, payload in follow_ups:
            self.trigger(event, payload)

    def trigger(self, event: str, *args: Any) -> bool:
        return self._events.dispatch(event, *args)

    def simulate_drop(self, reason: str = "transport close") -> None:
        self.connected = False
        self.id = None
        self.trigger("disconnect", reason)

    def simulate_reconnect(self, channel_id: str, attempts: int = 1) -> None:
        self.generation += 1
        self.id = channel_id
        self.connected = True
        self.trigger("connect")
        self.trigger("reconnect", attempts)

    def sent(self, event: str) -> list[Any]:
        return [data for name, data in self.emitted if name == event]


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate`` holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0)


@pytest.fixture
def fake_channel() -> FakeChannel:
    """Create a connected fake channel."""
    return FakeChannel()


@pytest.fixture
def fake_connector(
    fake_channel: FakeChannel,
) -> Callable[..., Awaitable[FakeChannel]]:
    """Create a connector that hands out ``fake_channel``."""

    async def _connect(server_uri: str, **options: Any) -> FakeChannel:
        fake_channel.options = {"server_uri": server_uri, **options}
        return fake_channel

    return _connect


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    return MagicMock(spec=aiohttp.ClientSession)


def create_mock_response(
    status: int = 200,
    json_data: dict[str, Any] | None = None,
) -> AsyncMock:
    """Create a configured mock response.

    Args:
        status: HTTP status code
        json_data: Data to return from json() call

    Returns:
        Configured AsyncMock response
    """
    response = AsyncMock()
    response.status = status

    if json_data is not None:
        response.json.return_value = json_data

    response.__aenter__.return_value = response
    response.__aexit__.return_value = None

    return response
