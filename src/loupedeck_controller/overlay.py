"""Transient overlays that show temporarily and hide themselves.

An overlay owns at most one pending hide timer. Showing an overlay that is
already visible replaces its timer instead of stacking a second one.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

VOLUME_DISPLAY_TIMEOUT = 2.0
MEDIA_DISPLAY_TIMEOUT = 2.0
NOTIFICATION_DISPLAY_TIMEOUT = 5.0
NOTIFICATION_DEBOUNCE = 0.3


class Overlay:
    """Hidden/visible state machine with a single auto-hide timer."""

    def __init__(
        self,
        timeout: float,
        name: str = "overlay",
        on_change: Callable[[], None] | None = None,
    ) -> None:
        """Initialize a hidden overlay.

        Args:
            timeout: Seconds the overlay stays visible after the last show.
            name: Name used in log messages.
            on_change: Called after every visibility change.
        """
        self.timeout = timeout
        self.name = name
        self.on_change = on_change
        self._visible = False
        self._payload: Any = None
        self._hide_timer: asyncio.TimerHandle | None = None

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def payload(self) -> Any:
        """Last payload handed to show()."""
        return self._payload

    @property
    def hide_pending(self) -> bool:
        return self._hide_timer is not None

    @property
    def hide_deadline(self) -> float | None:
        """Event loop time at which the pending auto-hide fires."""
        return self._hide_timer.when() if self._hide_timer else None

    def show(self, payload: Any = None) -> None:
        """Show the overlay and (re)start its auto-hide timer.

        Args:
            payload: New payload to render; the cached one is kept when None.
        """
        if payload is not None:
            self._payload = payload
        self._cancel_hide_timer()
        self._visible = True
        loop = asyncio.get_running_loop()
        self._hide_timer = loop.call_later(self.timeout, self._on_timeout)
        logger.debug("%s: shown for %.1fs", self.name, self.timeout)
        self._changed()

    def hide(self) -> None:
        """Hide immediately and drop the pending timer."""
        self._cancel_hide_timer()
        self._visible = False
        logger.debug("%s: hidden manually", self.name)
        self._changed()

    def cleanup(self) -> None:
        """Cancel any outstanding timer. Safe to call repeatedly."""
        self._cancel_hide_timer()
        self._visible = False

    def _on_timeout(self) -> None:
        self._hide_timer = None
        self._visible = False
        logger.debug("%s: auto-hidden", self.name)
        self._changed()

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.cancel()
            self._hide_timer = None

    def _changed(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change()
        except Exception:
            logger.exception("%s: change callback failed", self.name)


class NotificationOverlay(Overlay):
    """Overlay that queues payloads arriving while one is displayed.

    Queued payloads are shown oldest first. After an auto-hide the next one
    appears immediately; after a manual hide it appears after a short debounce.
    """

    def __init__(
        self,
        timeout: float = NOTIFICATION_DISPLAY_TIMEOUT,
        name: str = "notification",
        on_change: Callable[[], None] | None = None,
        debounce: float = NOTIFICATION_DEBOUNCE,
    ) -> None:
        super().__init__(timeout, name=name, on_change=on_change)
        self.debounce = debounce
        self._queue: deque[Any] = deque()
        self._pending_show: asyncio.TimerHandle | None = None

    @property
    def queued(self) -> tuple[Any, ...]:
        return tuple(self._queue)

    def notify(self, payload: Any) -> bool:
        """Show a payload, or queue it behind the one currently displayed.

        Returns:
            True if the payload is displayed now, False if it was queued.
        """
        if self._visible or self._pending_show is not None:
            self._queue.append(payload)
            logger.debug("%s: queued (%d pending)", self.name, len(self._queue))
            return False
        self.show(payload)
        return True

    def hide(self) -> None:
        self._cancel_hide_timer()
        self._visible = False
        self._payload = None
        logger.debug("%s: hidden manually", self.name)
        if self._queue and self._pending_show is None:
            loop = asyncio.get_running_loop()
            self._pending_show = loop.call_later(self.debounce, self._show_next)
        self._changed()

    def cleanup(self) -> None:
        super().cleanup()
        if self._pending_show is not None:
            self._pending_show.cancel()
            self._pending_show = None
        self._queue.clear()
        self._payload = None

    def _on_timeout(self) -> None:
        self._hide_timer = None
        self._visible = False
        self._payload = None
        logger.debug("%s: auto-hidden", self.name)
        if self._queue:
            self.show(self._queue.popleft())
        else:
            self._changed()

    def _show_next(self) -> None:
        self._pending_show = None
        if self._queue:
            self.show(self._queue.popleft())
