"""Message bridge between a session channel and a messaging runtime."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .constants import MESSAGE_EVENT
from .errors import NotConnectedError

if TYPE_CHECKING:
    from .transport.channel import Channel

_LOGGER = logging.getLogger(__name__)

MessageHandler = Callable[[Any], Any]


class MessageBridge:
    """Carry application messages between a channel and a runtime.

    Inbound ``message`` events go to the runtime handler unmodified and in
    arrival order. Outbound sends are refused while ``is_writable`` is
    false.
    """

    def __init__(
        self,
        handler: MessageHandler | None = None,
        *,
        is_writable: Callable[[], bool],
    ) -> None:
        self._handler = handler
        self._is_writable = is_writable
        self._channel: Channel | None = None

    @property
    def handler(self) -> MessageHandler | None:
        return self._handler

    def set_handler(self, handler: MessageHandler | None) -> None:
        """Register the runtime's inbound message handler."""
        self._handler = handler

    def attach(self, channel: Channel) -> None:
        """Start delivering ``channel`` messages to the handler."""
        if self._channel is channel:
            return
        self.detach()
        channel.on(MESSAGE_EVENT, self._deliver)
        self._channel = channel

    def detach(self) -> None:
        if self._channel is not None:
            self._channel.off(MESSAGE_EVENT, self._deliver)
            self._channel = None

    def send(self, message: Any) -> None:
        """Send ``message`` over the attached channel.

        Raises:
            NotConnectedError: If not writable or no channel is attached
        """
        channel = self._channel
        if channel is None or not self._is_writable():
            raise NotConnectedError("socket not connected")
        channel.emit(MESSAGE_EVENT, message)

    def _deliver(self, message: Any = None) -> Any:
        if self._handler is None:
            _LOGGER.debug("Inbound message dropped: no handler registered")
            return None
        return self._handler(message)
