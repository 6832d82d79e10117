"""Authentication challenge/response exchange over an open channel."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .constants import AUTH_ERROR_EVENT, AUTH_REQUEST_EVENT, AUTH_SUCCESS_EVENT
from .errors import (
    NotConnectedError,
    WorkspaceConnectionError,
    authentication_error_from_payload,
)
from .protocol import Identity, build_auth_request

if TYPE_CHECKING:
    from .transport.channel import Channel

_LOGGER = logging.getLogger(__name__)


class _CompletionToken:
    """Single-use settlement token for one negotiation attempt.

    Bound to the channel generation the request was sent on.
    """

    __slots__ = ("consumed", "generation")

    def __init__(self, generation: int) -> None:
        self.generation = generation
        self.consumed = False

    def consume(self, generation: int) -> bool:
        if self.consumed or generation != self.generation:
            return False
        self.consumed = True
        return True


async def negotiate(
    channel: Channel,
    identity: Identity,
    *,
    on_success: Callable[[], None] | None = None,
) -> None:
    """Authenticate ``identity`` over ``channel``.

    Success and error listeners are attached before the request is emitted
    and removed together as soon as either fires. A channel drop while the
    exchange is pending fails the negotiation.

    Args:
        channel: Connected channel to authenticate on
        identity: Identity presented in the request
        on_success: Called synchronously when the server accepts, before
            any later frame on the channel is dispatched

    Raises:
        AuthenticationError: Server rejected the request (typed by error name)
        WorkspaceConnectionError: Channel dropped or was not connected
    """
    request = build_auth_request(identity)
    outcome: asyncio.Future[None] = asyncio.get_running_loop().create_future()
    token = _CompletionToken(channel.generation)

    def _off() -> None:
        channel.off(AUTH_SUCCESS_EVENT, _on_success)
        channel.off(AUTH_ERROR_EVENT, _on_error)
        channel.off("disconnect", _on_disconnect)

    def _settle(error: Exception | None = None) -> None:
        if not token.consume(channel.generation):
            return
        _off()
        if outcome.done():
            return
        if error is None and on_success is not None:
            try:
                on_success()
            except Exception as err:
                outcome.set_exception(err)
                return
        if error is None:
            outcome.set_result(None)
        else:
            outcome.set_exception(error)

    def _on_success(_payload: Any = None) -> None:
        _settle()

    def _on_error(payload: Any = None) -> None:
        error = authentication_error_from_payload(payload)
        _LOGGER.warning("Authentication error (%s): %s", type(error).__name__, error)
        _settle(error)

    def _on_disconnect(reason: Any = None) -> None:
        _settle(
            WorkspaceConnectionError(
                f"Channel disconnected during authentication: {reason}"
            )
        )

    channel.once(AUTH_SUCCESS_EVENT, _on_success)
    channel.once(AUTH_ERROR_EVENT, _on_error)
    channel.once("disconnect", _on_disconnect)

    try:
        try:
            channel.emit(AUTH_REQUEST_EVENT, request)
        except NotConnectedError as err:
            raise WorkspaceConnectionError("Channel is not connected") from err
        _LOGGER.debug("Auth request sent (role=%s)", request["role"])
        await outcome
    finally:
        _off()
