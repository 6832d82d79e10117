"""WebSocket opener for the h-workspace channel transport."""

from __future__ import annotations

import asyncio

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    InvalidHandshake,
    InvalidStatus,
    InvalidURI,
    WebSocketException,
)

from ..errors import (
    ConnectionTimeoutError,
    HandshakeError,
    WorkspaceConnectionError,
)


async def connect_websocket(
    url: str,
    *,
    ping_interval: float | None = 20,
    timeout: float = 20.0,
) -> ClientConnection:
    """Open one channel websocket within ``timeout`` seconds.

    Frames are unbounded in size; keepalive pings follow ``ping_interval``.

    Raises:
        ConnectionTimeoutError: The connection was not open before the deadline
        HandshakeError: The upgrade was refused; ``status`` carries the HTTP
            status when the server answered with one
        WorkspaceConnectionError: Any other network or protocol failure
    """
    try:
        async with asyncio.timeout(timeout):
            return await websockets.connect(
                url,
                ping_interval=ping_interval,
                close_timeout=5,
                max_size=None,
            )
    except TimeoutError as err:
        raise ConnectionTimeoutError(
            f"Channel websocket {url} not open after {timeout}s"
        ) from err
    except InvalidStatus as err:
        status = err.response.status_code
        raise HandshakeError(
            f"Server refused channel upgrade with HTTP {status}", status=status
        ) from err
    except (InvalidHandshake, InvalidURI) as err:
        raise HandshakeError(f"Channel handshake with {url} failed: {err}") from err
    except (OSError, WebSocketException) as err:
        raise WorkspaceConnectionError(
            f"Channel websocket {url} failed: {err}"
        ) from err
