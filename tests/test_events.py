"""Tests for EventEmitter."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

from h_workspace_client.events import EventEmitter


class TestEventEmitterRegistration:
    """Tests for on/once/off."""

    def test_on_invokes_every_dispatch(self):
        """Test persistent handlers run on each dispatch."""
        emitter = EventEmitter()
        handler = MagicMock()
        emitter.on("tick", handler)

        emitter.dispatch("tick", 1)
        emitter.dispatch("tick", 2)

        assert [c.args for c in handler.call_args_list] == [(1,), (2,)]

    def test_once_invokes_single_dispatch(self):
        """Test once handlers are removed before running."""
        emitter = EventEmitter()
        handler = MagicMock()
        emitter.once("tick", handler)

        assert emitter.dispatch("tick") is True
        assert emitter.dispatch("tick") is False
        handler.assert_called_once_with()
        assert emitter.listener_count("tick") == 0

    def test_off_removes_once_handler(self):
        """Test off() finds handlers registered with once()."""
        emitter = EventEmitter()
        handler = MagicMock()
        emitter.once("tick", handler)
        emitter.off("tick", handler)

        emitter.dispatch("tick")

        handler.assert_not_called()

    def test_off_matches_bound_methods(self):
        """Test bound methods can be removed with a fresh reference."""

        class Target:
            def __init__(self):
                self.calls = 0

            def handle(self):
                self.calls += 1

        emitter = EventEmitter()
        target = Target()
        emitter.on("tick", target.handle)
        emitter.off("tick", target.handle)

        emitter.dispatch("tick")

        assert target.calls == 0

    def test_off_without_handler_clears_event(self):
        """Test off(event) removes every handler."""
        emitter = EventEmitter()
        emitter.on("tick", MagicMock())
        emitter.on("tick", MagicMock())

        emitter.off("tick")

        assert emitter.listener_count("tick") == 0

    def test_off_unknown_handler_is_noop(self):
        """Test removing an unregistered handler does nothing."""
        emitter = EventEmitter()
        emitter.on("tick", MagicMock())

        emitter.off("tick", MagicMock())
        emitter.off("other", MagicMock())

        assert emitter.listener_count("tick") == 1


class TestEventEmitterDispatch:
    """Tests for dispatch()."""

    def test_dispatch_order(self):
        """Test handlers run in registration order."""
        emitter = EventEmitter()
        calls: list[str] = []
        emitter.on("tick", lambda: calls.append("first"))
        emitter.once("tick", lambda: calls.append("second"))
        emitter.on("tick", lambda: calls.append("third"))

        emitter.dispatch("tick")

        assert calls == ["first", "second", "third"]

    def test_handler_error_does_not_stop_dispatch(self):
        """Test a failing handler is logged and skipped."""
        emitter = EventEmitter()
        after = MagicMock()
        emitter.on("tick", MagicMock(side_effect=RuntimeError("boom")))
        emitter.on("tick", after)

        emitter.dispatch("tick")

        after.assert_called_once()

    async def test_coroutine_handler_is_scheduled(self):
        """Test coroutine handlers run as tasks."""
        emitter = EventEmitter()
        received = asyncio.Event()

        async def handler(value):
            assert value == "payload"
            received.set()

        emitter.on("tick", handler)
        emitter.dispatch("tick", "payload")

        await asyncio.wait_for(received.wait(), timeout=1.0)

    def test_once_leaves_equal_persistent_handler(self):
        """Test a once entry removes itself, not an earlier on() entry."""
        emitter = EventEmitter()
        handler = MagicMock()
        emitter.on("tick", handler)
        emitter.once("tick", handler)

        emitter.dispatch("tick")
        emitter.dispatch("tick")

        assert handler.call_count == 3
        assert emitter.listener_count("tick") == 1
