"""Tests for knob, physical button and notification handlers."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from loupedeck_controller.components import MediaDisplay, NotificationDisplay, VolumeDisplay, WorkspaceButton
from loupedeck_controller.exceptions import CommandError
from loupedeck_controller.geometry import GridGeometry
from loupedeck_controller.handlers import (
    MediaHandler,
    NotificationHandler,
    PageHandler,
    PhysicalButtonHandler,
    VolumeHandler,
)
from loupedeck_controller.layout import ButtonConfig
from loupedeck_controller.models import ButtonEvent, Notification, RotateEvent
from loupedeck_controller.router import DisplayRouter


@pytest.fixture
def screen() -> MagicMock:
    screen = MagicMock()
    screen.draw_screen = AsyncMock()
    return screen


@pytest.fixture
def router(screen: MagicMock, geometry: GridGeometry) -> DisplayRouter:
    return DisplayRouter(screen, geometry)


class TestVolumeHandler:
    @pytest.mark.asyncio
    async def test_rotate_adjusts_and_shows_overlay(self, router: DisplayRouter, mock_volume, screen) -> None:
        display = VolumeDisplay(4, 0, mock_volume)
        router.add_component(display)
        handler = VolumeHandler(mock_volume, router)

        assert await handler.handle_rotate(RotateEvent(id="knobTL", delta=-2)) is True
        await asyncio.sleep(0)

        mock_volume.adjust_volume.assert_awaited_once_with(-10)
        assert display.visible
        screen.draw_screen.assert_awaited()
        display.cleanup()

    @pytest.mark.asyncio
    async def test_other_knob_ignored(self, router: DisplayRouter, mock_volume) -> None:
        handler = VolumeHandler(mock_volume, router)

        assert await handler.handle_rotate(RotateEvent(id="knobCL", delta=1)) is False
        assert await handler.handle_down(ButtonEvent(id=0)) is False
        mock_volume.adjust_volume.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_press_toggles_mute(self, router: DisplayRouter, mock_volume, mock_vibration) -> None:
        handler = VolumeHandler(mock_volume, router, vibration=mock_vibration)

        assert await handler.handle_down(ButtonEvent(id="knobTL")) is True

        mock_volume.toggle_mute.assert_awaited_once()
        mock_vibration.vibrate_pattern.assert_awaited_once_with("warning")

    @pytest.mark.asyncio
    async def test_only_current_page_overlay_shown(self, router: DisplayRouter, mock_volume) -> None:
        other = VolumeDisplay(4, 0, mock_volume)
        router.add_component(other, page=2)
        handler = VolumeHandler(mock_volume, router)

        await handler.handle_rotate(RotateEvent(id="knobTL", delta=1))

        assert not other.visible


class TestMediaHandler:
    @pytest.mark.asyncio
    async def test_shows_track_on_current_page(self, router: DisplayRouter, mock_media, screen) -> None:
        display = MediaDisplay(4, 1, mock_media)
        other = MediaDisplay(4, 1, mock_media)
        router.add_component(display)
        router.add_component(other, page=2)
        handler = MediaHandler(mock_media, router)

        assert await handler.show_overlay() is True
        await asyncio.sleep(0)

        mock_media.get_metadata.assert_awaited_once()
        assert display.visible
        assert display.metadata.title == "Song"
        assert not other.visible
        screen.draw_screen.assert_awaited()
        display.cleanup()

    @pytest.mark.asyncio
    async def test_no_overlay_on_page(self, router: DisplayRouter, mock_media) -> None:
        handler = MediaHandler(mock_media, router)

        assert await handler.show_overlay() is False
        mock_media.get_metadata.assert_not_awaited()


class TestPageHandler:
    @pytest.mark.asyncio
    async def test_rotate_toggles_pages(self, router: DisplayRouter, mock_workspaces) -> None:
        button = WorkspaceButton(1, 0, 2, mock_workspaces)
        router.add_component(button, page=2)
        handler = PageHandler(router)

        assert await handler.handle_rotate(RotateEvent(id="knobCL", delta=1)) is True
        assert router.current_page == 2
        assert button.active

        assert await handler.handle_rotate(RotateEvent(id="knobCL", delta=-1)) is True
        assert router.current_page == 1

    @pytest.mark.asyncio
    async def test_zero_delta_ignored(self, router: DisplayRouter) -> None:
        assert await PageHandler(router).handle_rotate(RotateEvent(id="knobCL", delta=0)) is False
        assert router.current_page == 1

    @pytest.mark.asyncio
    async def test_press_returns_home(self, router: DisplayRouter, mock_vibration) -> None:
        handler = PageHandler(router, vibration=mock_vibration)
        await router.switch_page(2)

        assert await handler.handle_down(ButtonEvent(id="knobCL")) is True
        assert router.current_page == 1
        mock_vibration.vibrate_pattern.assert_awaited_with("success")

    @pytest.mark.asyncio
    async def test_press_on_home_warns(self, router: DisplayRouter, mock_vibration) -> None:
        handler = PageHandler(router, vibration=mock_vibration)

        assert await handler.handle_down(ButtonEvent(id="knobCL")) is True
        mock_vibration.vibrate_pattern.assert_awaited_once_with("warning")


class TestPhysicalButtonHandler:
    @pytest.fixture
    def buttons(self) -> dict[int, ButtonConfig]:
        return {
            0: ButtonConfig(command="page:2", led_color="#FFFFFF"),
            1: ButtonConfig(command="kitty", label="Terminal", led_color="#FF0000"),
            2: ButtonConfig(command="", led_color="#00FF00"),
            3: ButtonConfig(command="page:abc", led_color="#0000FF"),
        }

    @pytest.mark.asyncio
    async def test_page_action(self, router: DisplayRouter, mock_launcher, buttons) -> None:
        handler = PhysicalButtonHandler(router, mock_launcher, buttons)

        assert await handler.handle_down(ButtonEvent(id=0)) is True
        assert router.current_page == 2
        mock_launcher.launch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_command_action(self, router: DisplayRouter, mock_launcher, buttons) -> None:
        handler = PhysicalButtonHandler(router, mock_launcher, buttons)

        assert await handler.handle_down(ButtonEvent(id=1)) is True
        mock_launcher.launch.assert_awaited_once_with("kitty")

    @pytest.mark.asyncio
    async def test_empty_action_ignored(self, router: DisplayRouter, mock_launcher, buttons) -> None:
        handler = PhysicalButtonHandler(router, mock_launcher, buttons)

        assert await handler.handle_down(ButtonEvent(id=2)) is False
        assert await handler.handle_down(ButtonEvent(id=7)) is False
        mock_launcher.launch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_page_ignored(self, router: DisplayRouter, mock_launcher, buttons) -> None:
        handler = PhysicalButtonHandler(router, mock_launcher, buttons)

        assert await handler.handle_down(ButtonEvent(id=3)) is False
        assert router.current_page == 1

    @pytest.mark.asyncio
    async def test_knob_ids_not_handled(self, router: DisplayRouter, mock_launcher, buttons) -> None:
        handler = PhysicalButtonHandler(router, mock_launcher, buttons)
        assert await handler.handle_down(ButtonEvent(id="knobTL")) is False

    @pytest.mark.asyncio
    async def test_launch_failure_vibrates_error(self, router: DisplayRouter, mock_launcher, mock_vibration, buttons) -> None:
        mock_launcher.launch.side_effect = CommandError("not found")
        handler = PhysicalButtonHandler(router, mock_launcher, buttons, vibration=mock_vibration)

        assert await handler.handle_down(ButtonEvent(id=1)) is True
        mock_vibration.vibrate_pattern.assert_awaited_with("error")

    def test_led_colors_and_update(self, router: DisplayRouter, mock_launcher, buttons) -> None:
        handler = PhysicalButtonHandler(router, mock_launcher, buttons)
        assert handler.led_colors() == {0: "#FFFFFF", 1: "#FF0000", 2: "#00FF00", 3: "#0000FF"}

        handler.update_buttons({0: ButtonConfig(command="page:1", led_color="#123456")})
        assert handler.led_colors() == {0: "#123456"}


class TestNotificationHandler:
    @pytest.mark.asyncio
    async def test_delivers_to_display(self, router: DisplayRouter, screen) -> None:
        display = NotificationDisplay()
        router.add_component(display, page=2)

        assert await NotificationHandler(router).handle(Notification(summary="Hello")) is True
        await asyncio.sleep(0)

        assert display.current.summary == "Hello"
        screen.draw_screen.assert_awaited()
        display.cleanup()

    @pytest.mark.asyncio
    async def test_without_display_dropped(self, router: DisplayRouter) -> None:
        assert await NotificationHandler(router).handle(Notification(summary="Hello")) is False
