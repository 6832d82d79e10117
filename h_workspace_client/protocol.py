"""Protocol helpers for h-workspace channel frames and authentication.

This module provides identity variants, authentication request builders,
server address helpers and the JSON frame codec used on the websocket.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from .constants import DEFAULT_CHANNEL_PATH, Role

_WS_SCHEMES = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}


@dataclass(frozen=True)
class AnonymousIdentity:
    """Identity presenting a shared access code only."""

    access_code: str

    def __post_init__(self) -> None:
        if not self.access_code:
            raise ValueError("access_code is required")

    @property
    def role(self) -> Role:
        return Role.ANONYMOUS_CLIENT

    @property
    def credential(self) -> None:
        return None


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """Identity presenting an access code plus a bearer credential."""

    access_code: str
    credential: str

    def __post_init__(self) -> None:
        if not self.access_code:
            raise ValueError("access_code is required")
        if not self.credential:
            raise ValueError("credential is required")

    @property
    def role(self) -> Role:
        return Role.AUTHENTICATED_CLIENT

    def __repr__(self) -> str:
        return f"AuthenticatedIdentity(access_code={self.access_code!r}, credential='***')"


Identity = AnonymousIdentity | AuthenticatedIdentity


def build_auth_request(identity: Identity) -> dict[str, Any]:
    """Build a fresh authentication request payload for ``identity``.

    Anonymous requests carry no ``authToken`` key at all.
    """
    if isinstance(identity, AuthenticatedIdentity):
        return {
            "authToken": identity.credential,
            "code": identity.access_code,
            "role": identity.role.value,
        }
    if isinstance(identity, AnonymousIdentity):
        return {
            "code": identity.access_code,
            "role": identity.role.value,
        }
    raise TypeError(f"Unsupported identity: {type(identity).__name__}")


def normalize_server_uri(server_uri: str) -> str:
    """Strip trailing separators from a server address."""
    if not server_uri:
        raise TypeError("server_uri is required")
    return server_uri.rstrip("/")


def path_join(part1: str, part2: str) -> str:
    """Join two URL path segments with exactly one separator."""
    return part1.rstrip("/") + "/" + part2.lstrip("/")


def resolve_channel_endpoint(server_uri: str) -> tuple[str, str]:
    """Split a server address into a websocket endpoint and routing path.

    The endpoint holds only the scheme and host. When the server is mounted
    under a path prefix, the channel path is looked up below that prefix.

    Returns:
        Tuple of (endpoint, path), e.g. ``("wss://host", "/prefix/ws")``.

    Raises:
        ValueError: If the address has no host or an unsupported scheme.
    """
    parts = urlsplit(server_uri)
    scheme = _WS_SCHEMES.get(parts.scheme.lower())
    if scheme is None:
        raise ValueError(f"Unsupported server scheme: {parts.scheme!r}")
    if not parts.netloc:
        raise ValueError(f"Server address has no host: {server_uri!r}")

    endpoint = urlunsplit((scheme, parts.netloc, "", "", ""))

    if parts.path and parts.path != "/":
        return endpoint, path_join(parts.path, DEFAULT_CHANNEL_PATH)
    return endpoint, DEFAULT_CHANNEL_PATH


def build_frame(event: str, data: Any = None) -> str:
    """Encode one channel event as a JSON text frame."""
    if not event:
        raise ValueError("event name is required")
    return json.dumps({"event": event, "data": data})


def parse_frame(raw: str) -> tuple[str, Any]:
    """Decode a JSON text frame into ``(event, data)``.

    Raises:
        ValueError: If the frame is not a JSON object with an event name.
    """
    frame = json.loads(raw)
    if not isinstance(frame, dict):
        raise ValueError("Frame must be a JSON object")
    event = frame.get("event")
    if not isinstance(event, str) or not event:
        raise ValueError("Frame is missing an event name")
    return event, frame.get("data")
