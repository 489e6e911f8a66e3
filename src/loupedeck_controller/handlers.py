"""Feature handlers for knobs, physical buttons, media and notifications."""

import logging

from loupedeck_controller.components.media import MediaDisplay
from loupedeck_controller.components.notification import NotificationDisplay
from loupedeck_controller.components.volume import VolumeDisplay
from loupedeck_controller.components.workspace import WorkspaceButton
from loupedeck_controller.controls import AppLauncher, MediaControl, VolumeControl
from loupedeck_controller.exceptions import CommandError
from loupedeck_controller.layout import ButtonConfig
from loupedeck_controller.models import ButtonEvent, Notification, RotateEvent
from loupedeck_controller.router import DisplayRouter
from loupedeck_controller.vibration import Vibration

logger = logging.getLogger(__name__)

VOLUME_KNOB = "knobTL"
PAGE_KNOB = "knobCL"
PAGE_COMMAND_PREFIX = "page:"


class VolumeHandler:
    """Volume knob: rotate changes the level, press toggles mute."""

    def __init__(
        self,
        volume: VolumeControl,
        router: DisplayRouter,
        step: int = 5,
        knob: str = VOLUME_KNOB,
        vibration: Vibration | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            volume: Mixer to adjust.
            router: Router whose current page holds the volume overlay.
            step: Percent per knob detent.
            knob: Knob id this handler answers to.
            vibration: Haptic feedback, optional.
        """
        self.volume = volume
        self.router = router
        self.step = step
        self.knob = knob
        self.vibration = vibration

    def _show_overlay(self) -> None:
        for display in self.router.find(VolumeDisplay):
            display.show_temporarily()
        self.router.request_render()

    async def handle_rotate(self, event: RotateEvent) -> bool:
        if event.id != self.knob:
            return False
        level = await self.volume.adjust_volume(event.delta * self.step)
        logger.info("Volume: %d%%", level)
        self._show_overlay()
        return True

    async def handle_down(self, event: ButtonEvent) -> bool:
        if event.id != self.knob:
            return False
        muted = await self.volume.toggle_mute()
        self._show_overlay()
        if self.vibration:
            await self.vibration.vibrate_pattern("warning" if muted else "success")
        return True


class MediaHandler:
    """Shows the media overlay after playback changes."""

    def __init__(self, media: MediaControl, router: DisplayRouter) -> None:
        """Initialize the handler.

        Args:
            media: Player queried for the track shown on the overlay.
            router: Router whose current page holds the media overlay.
        """
        self.media = media
        self.router = router

    async def show_overlay(self) -> bool:
        """Show every media overlay on the current page with fresh track metadata.

        Returns:
            True when at least one overlay was shown.
        """
        displays = self.router.find(MediaDisplay)
        if not displays:
            return False
        metadata = await self.media.get_metadata()
        logger.debug("Media: %s - %s (%s)", metadata.artist, metadata.title, metadata.status)
        for display in displays:
            await display.show_temporarily(metadata)
        self.router.request_render()
        return True


class PageHandler:
    """Page knob: rotate toggles between pages 1 and 2, press returns to page 1."""

    def __init__(self, router: DisplayRouter, knob: str = PAGE_KNOB, vibration: Vibration | None = None) -> None:
        """Initialize the handler.

        Args:
            router: Router to switch pages on.
            knob: Knob id this handler answers to.
            vibration: Haptic feedback, optional.
        """
        self.router = router
        self.knob = knob
        self.vibration = vibration

    async def refresh_workspace_buttons(self, page: int = 2) -> None:
        for button in self.router.find(WorkspaceButton, page):
            await button.update_active_state()

    async def handle_rotate(self, event: RotateEvent) -> bool:
        if event.id != self.knob or event.delta == 0:
            return False

        target = 2 if self.router.current_page == 1 else 1
        if target == 2:
            await self.refresh_workspace_buttons(target)
        await self.router.switch_page(target)
        if self.vibration:
            await self.vibration.vibrate_pattern("tap")
        return True

    async def handle_down(self, event: ButtonEvent) -> bool:
        if event.id != self.knob:
            return False

        if self.router.current_page == 1:
            logger.info("Already on page 1")
            if self.vibration:
                await self.vibration.vibrate_pattern("warning")
            return True
        await self.router.switch_page(1)
        if self.vibration:
            await self.vibration.vibrate_pattern("success")
        return True


class PhysicalButtonHandler:
    """Round buttons 0-3, each bound to an action in the layout.

    An empty action is ignored, ``page:N`` switches page and anything else is
    launched as a shell command.
    """

    def __init__(
        self,
        router: DisplayRouter,
        launcher: AppLauncher,
        buttons: dict[int, ButtonConfig],
        vibration: Vibration | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            router: Router for `page:N` actions.
            launcher: Starts shell command actions.
            buttons: Action per button id, from the layout.
            vibration: Haptic feedback, optional.
        """
        self.router = router
        self.launcher = launcher
        self.buttons = dict(buttons)
        self.vibration = vibration

    def update_buttons(self, buttons: dict[int, ButtonConfig]) -> None:
        self.buttons = dict(buttons)

    def led_colors(self) -> dict[int, str]:
        return {button_id: config.led_color for button_id, config in sorted(self.buttons.items())}

    async def handle_down(self, event: ButtonEvent) -> bool:
        if not isinstance(event.id, int):
            return False
        config = self.buttons.get(event.id)
        command = config.command.strip() if config else ""
        if not command:
            logger.debug("Button %d has no action", event.id)
            return False

        logger.info("Physical button %d: %s", event.id, config.label or command)
        if command.startswith(PAGE_COMMAND_PREFIX):
            try:
                page = int(command.removeprefix(PAGE_COMMAND_PREFIX))
            except ValueError:
                logger.warning("Invalid page action for button %d: %s", event.id, command)
                return False
            await self.router.switch_page(page)
            if self.vibration:
                await self.vibration.vibrate_pattern("tap")
            return True

        if self.vibration:
            await self.vibration.vibrate_pattern("tap")
        try:
            await self.launcher.launch(command)
        except CommandError as e:
            logger.error("Button %d action failed: %s", event.id, e)
            if self.vibration:
                await self.vibration.vibrate_pattern("error")
        return True


class NotificationHandler:
    """Pushes incoming notifications into the notification overlay."""

    def __init__(self, router: DisplayRouter) -> None:
        """Initialize the handler.

        Args:
            router: Router searched for the notification display.
        """
        self.router = router

    async def handle(self, notification: Notification) -> bool:
        displays = self.router.find_all(NotificationDisplay)
        if not displays:
            logger.debug("No notification display configured, dropping %s", notification.summary)
            return False
        await displays[0].show_notification(notification)
        self.router.request_render()
        return True
