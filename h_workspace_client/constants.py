"""Wire-level names shared with the h-workspace server."""

from __future__ import annotations

from enum import StrEnum
from typing import Final

AUTH_REQUEST_EVENT: Final = "authenticate"
AUTH_SUCCESS_EVENT: Final = "authenticated"
AUTH_ERROR_EVENT: Final = "unauthorized"

MESSAGE_EVENT: Final = "message"

ROOM_DESTROYED_EVENT: Final = "room-destroyed"


class WorkspaceEvent(StrEnum):
    """Workspace update lifecycle events pushed by the server."""

    UPDATE_STARTED = "workspace-update-started"
    UPDATE_FINISHED = "workspace-update-finished"
    UPDATE_FAILED = "workspace-update-failed"


class Role(StrEnum):
    """Roles announced in the authentication request."""

    ANONYMOUS_CLIENT = "anonymous-client"
    AUTHENTICATED_CLIENT = "authenticated-client"


LIFECYCLE_EVENTS: Final = (
    ROOM_DESTROYED_EVENT,
    WorkspaceEvent.UPDATE_STARTED.value,
    WorkspaceEvent.UPDATE_FINISHED.value,
    WorkspaceEvent.UPDATE_FAILED.value,
)

# Default websocket route; a server mounted under a path prefix serves it
# below that prefix.
DEFAULT_CHANNEL_PATH: Final = "/ws"
