"""Open a channel and wait until its transport is live."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from ..errors import ConnectionTimeoutError, WorkspaceConnectionError
from ..protocol import normalize_server_uri, resolve_channel_endpoint
from .channel import Channel

_LOGGER = logging.getLogger(__name__)

_TERMINAL_EVENTS = ("connect", "connect_error", "connect_timeout", "error")


async def connect_channel(
    server_uri: str,
    *,
    channel_factory: Callable[..., Channel] = Channel,
    **channel_options: Any,
) -> Channel:
    """Connect a channel to the workspace server.

    Resolves on the first ``connect`` event and fails on the first of
    ``connect_error``, ``connect_timeout`` or ``error``. The four listeners
    are removed together once any of them fires.

    Args:
        server_uri: Server address, e.g. ``https://host/prefix``
        channel_factory: Callable building the channel (endpoint, path=...)
        **channel_options: Forwarded to the channel factory

    Raises:
        WorkspaceConnectionError: If the transport could not be established
        ConnectionTimeoutError: If the connection attempt timed out
    """
    endpoint, path = resolve_channel_endpoint(normalize_server_uri(server_uri))
    channel = channel_factory(endpoint, path=path, **channel_options)

    loop = asyncio.get_running_loop()
    outcome: asyncio.Future[None] = loop.create_future()

    def _off() -> None:
        channel.off("connect", _on_connect)
        channel.off("connect_error", _on_connect_error)
        channel.off("connect_timeout", _on_connect_timeout)
        channel.off("error", _on_error)

    def _settle(error: Exception | None = None) -> None:
        _off()
        if outcome.done():
            return
        if error is None:
            outcome.set_result(None)
        else:
            outcome.set_exception(error)

    def _on_connect() -> None:
        _settle()

    def _on_connect_error(err: Any = None) -> None:
        _settle(_as_connection_error(err, "Channel connection failed"))

    def _on_connect_timeout(err: Any = None) -> None:
        if isinstance(err, ConnectionTimeoutError):
            _settle(err)
        else:
            _settle(ConnectionTimeoutError("Channel connection timed out"))

    def _on_error(err: Any = None) -> None:
        _settle(_as_connection_error(err, "Channel transport error"))

    channel.once("connect", _on_connect)
    channel.once("connect_error", _on_connect_error)
    channel.once("connect_timeout", _on_connect_timeout)
    channel.once("error", _on_error)

    _LOGGER.debug("[%s] Connecting channel at %s%s", server_uri, endpoint, path)
    channel.open()

    try:
        await outcome
    except BaseException:
        _off()
        await channel.close()
        raise

    return channel


def _as_connection_error(err: Any, message: str) -> WorkspaceConnectionError:
    if isinstance(err, WorkspaceConnectionError):
        return err
    error = WorkspaceConnectionError(f"{message}: {err}" if err else message)
    if isinstance(err, BaseException):
        error.__cause__ = err
    return error
