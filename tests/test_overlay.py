"""Tests for the overlay hide timers and notification queue."""

import asyncio
from unittest.mock import MagicMock

import pytest

from loupedeck_controller.overlay import NotificationOverlay, Overlay


class TestOverlay:
    @pytest.mark.asyncio
    async def test_show_then_auto_hide(self) -> None:
        on_change = MagicMock()
        overlay = Overlay(0.05, on_change=on_change)

        overlay.show("payload")
        assert overlay.visible
        assert overlay.hide_pending
        assert overlay.payload == "payload"

        await asyncio.sleep(0.1)
        assert not overlay.visible
        assert not overlay.hide_pending
        assert on_change.call_count == 2

    @pytest.mark.asyncio
    async def test_deadline_is_timeout_after_show(self) -> None:
        """Visible until exactly the timeout: the single timer fires at show time + timeout."""
        loop = asyncio.get_running_loop()
        overlay = Overlay(2.0)

        before = loop.time()
        overlay.show()
        after = loop.time()

        assert overlay.hide_deadline is not None
        assert before + 2.0 <= overlay.hide_deadline <= after + 2.0
        overlay.cleanup()

    @pytest.mark.asyncio
    async def test_rapid_shows_keep_single_timer(self) -> None:
        overlay = Overlay(0.2)

        overlay.show()
        first_deadline = overlay.hide_deadline
        await asyncio.sleep(0.1)
        overlay.show()
        second_deadline = overlay.hide_deadline

        assert second_deadline is not None and first_deadline is not None
        assert second_deadline > first_deadline

        # Past the first deadline, still visible
        await asyncio.sleep(0.15)
        assert overlay.visible

        await asyncio.sleep(0.1)
        assert not overlay.visible

    @pytest.mark.asyncio
    async def test_show_without_payload_keeps_cached(self) -> None:
        overlay = Overlay(1.0)
        overlay.show("first")
        overlay.show()
        assert overlay.payload == "first"
        overlay.cleanup()

    @pytest.mark.asyncio
    async def test_manual_hide_cancels_timer(self) -> None:
        on_change = MagicMock()
        overlay = Overlay(0.05, on_change=on_change)
        overlay.show()
        overlay.hide()

        assert not overlay.visible
        assert not overlay.hide_pending
        await asyncio.sleep(0.1)
        # show + hide only; the cancelled timer never fired
        assert on_change.call_count == 2

    def test_cleanup_never_shown_is_noop(self) -> None:
        on_change = MagicMock()
        overlay = Overlay(1.0, on_change=on_change)

        overlay.cleanup()
        overlay.cleanup()

        assert not overlay.visible
        assert not overlay.hide_pending
        on_change.assert_not_called()

    @pytest.mark.asyncio
    async def test_failing_callback_is_contained(self) -> None:
        overlay = Overlay(1.0, on_change=MagicMock(side_effect=RuntimeError("boom")))
        overlay.show()
        assert overlay.visible
        overlay.cleanup()


class TestNotificationOverlay:
    @pytest.mark.asyncio
    async def test_queue_shown_in_order_after_timeouts(self) -> None:
        overlay = NotificationOverlay(timeout=0.1)

        assert overlay.notify("A") is True
        assert overlay.notify("B") is False
        assert overlay.notify("C") is False
        assert overlay.payload == "A"
        assert overlay.queued == ("B", "C")

        await asyncio.sleep(0.15)
        assert overlay.visible
        assert overlay.payload == "B"

        await asyncio.sleep(0.1)
        assert overlay.payload == "C"
        assert overlay.queued == ()

        await asyncio.sleep(0.15)
        assert not overlay.visible
        assert overlay.payload is None

    @pytest.mark.asyncio
    async def test_manual_hide_shows_next_after_debounce(self) -> None:
        overlay = NotificationOverlay(timeout=5.0, debounce=0.05)
        overlay.notify("A")
        overlay.notify("B")

        overlay.hide()
        assert not overlay.visible
        assert overlay.payload is None

        # Arrivals during the debounce queue behind B
        assert overlay.notify("C") is False

        await asyncio.sleep(0.1)
        assert overlay.visible
        assert overlay.payload == "B"
        assert overlay.queued == ("C",)
        overlay.cleanup()

    @pytest.mark.asyncio
    async def test_cleanup_drops_queue_and_pending_show(self) -> None:
        overlay = NotificationOverlay(timeout=5.0, debounce=0.05)
        overlay.notify("A")
        overlay.notify("B")
        overlay.hide()

        overlay.cleanup()
        await asyncio.sleep(0.1)

        assert not overlay.visible
        assert overlay.queued == ()
        assert overlay.payload is None
