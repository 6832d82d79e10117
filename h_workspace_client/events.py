"""Minimal synchronous event emitter used by channels and sessions."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

_LOGGER = logging.getLogger(__name__)

EventHandler = Callable[..., Any]


class _Once:
    """Wrapper that removes itself before the first invocation."""

    __slots__ = ("emitter", "event", "handler")

    def __init__(self, emitter: EventEmitter, event: str, handler: EventHandler):
        self.emitter = emitter
        self.event = event
        self.handler = handler

    def __call__(self, *args: Any) -> Any:
        self.emitter._discard(self.event, self)
        return self.handler(*args)


class EventEmitter:
    """Dispatch named events to registered handlers.

    Handlers run synchronously in registration order. A handler returning a
    coroutine has it scheduled on the running loop. Handler failures are
    logged and never interrupt dispatch to the remaining handlers.
    """

    def __init__(self) -> None:
        self._handlers: defaultdict[str, list[EventHandler]] = defaultdict(list)
        self._background_tasks: set[asyncio.Task[Any]] = set()

    def on(self, event: str, handler: EventHandler) -> EventHandler:
        """Register ``handler`` for every dispatch of ``event``."""
        self._handlers[event].append(handler)
        return handler

    def once(self, event: str, handler: EventHandler) -> EventHandler:
        """Register ``handler`` for the next dispatch of ``event`` only."""
        self._handlers[event].append(_Once(self, event, handler))
        return handler

    def off(self, event: str, handler: EventHandler | None = None) -> None:
        """Remove ``handler`` (or every handler) registered for ``event``."""
        if handler is None:
            self._handlers.pop(event, None)
            return

        handlers = self._handlers.get(event)
        if not handlers:
            return
        for registered in handlers:
            # Bound methods compare equal but are never identical
            if registered == handler or (
                isinstance(registered, _Once) and registered.handler == handler
            ):
                handlers.remove(registered)
                break
        if not handlers:
            del self._handlers[event]

    def _discard(self, event: str, entry: EventHandler) -> None:
        handlers = self._handlers.get(event)
        if not handlers:
            return
        # Identity match: a once-wrapper must not remove an equal persistent entry
        for index, registered in enumerate(handlers):
            if registered is entry:
                del handlers[index]
                break
        if not handlers:
            del self._handlers[event]

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

    def dispatch(self, event: str, *args: Any) -> bool:
        """Invoke handlers for ``event``.

        Returns:
            True if at least one handler was registered.
        """
        handlers = list(self._handlers.get(event, ()))
        for handler in handlers:
            try:
                result = handler(*args)
                if asyncio.iscoroutine(result):
                    self._fire_task(result)
            except Exception:
                _LOGGER.exception("Handler error for '%s'", event)
        return bool(handlers)

    def _fire_task(self, coro: Any) -> None:
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
