"""Tests for the display router: layering, dispatch, pages and rendering."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import RecordingComponent
from loupedeck_controller.device import MockDevice
from loupedeck_controller.geometry import CellRect, GridGeometry
from loupedeck_controller.router import DisplayRouter


@pytest.fixture
def router(mock_device: MockDevice, geometry: GridGeometry) -> DisplayRouter:
    return DisplayRouter(mock_device, geometry)


class TestTouchDispatch:
    @pytest.mark.asyncio
    async def test_topmost_component_handles_first(self, router: DisplayRouter) -> None:
        bottom = RecordingComponent(1, 1, "bottom")
        top = RecordingComponent(1, 1, "top")
        router.add_component(bottom)
        router.add_component(top)

        assert await router.handle_touch(1, 1) is True
        assert top.touches == [(1, 1)]
        assert bottom.touches == []

    @pytest.mark.asyncio
    async def test_falls_through_when_top_declines(self, router: DisplayRouter) -> None:
        bottom = RecordingComponent(1, 1, "bottom")
        top = RecordingComponent(1, 1, "top", handles=False)
        router.add_component(bottom)
        router.add_component(top)

        assert await router.handle_touch(1, 1) is True
        assert top.touches == [(1, 1)]
        assert bottom.touches == [(1, 1)]

    @pytest.mark.asyncio
    async def test_empty_cell_returns_false(self, router: DisplayRouter) -> None:
        component = RecordingComponent(0, 0)
        router.add_component(component)

        assert await router.handle_touch(3, 2) is False
        assert component.touches == []

    @pytest.mark.asyncio
    async def test_raising_component_treated_as_unhandled(self, router: DisplayRouter) -> None:
        bottom = RecordingComponent(2, 0, "bottom")
        router.add_component(bottom)
        router.add_component(RecordingComponent(2, 0, "broken", fails=True))

        assert await router.handle_touch(2, 0) is True
        assert bottom.touches == [(2, 0)]

    @pytest.mark.asyncio
    async def test_full_screen_component_indexed_everywhere(self, router: DisplayRouter) -> None:
        overlay = RecordingComponent(0, 0, "overlay")
        overlay.full_screen = True
        cell = RecordingComponent(3, 1, "cell")
        router.add_component(cell)
        router.add_component(overlay)

        assert await router.handle_touch(3, 1) is True
        assert overlay.touches == [(3, 1)]
        assert cell.touches == []

    @pytest.mark.asyncio
    async def test_unpositioned_component_never_dispatched(self, router: DisplayRouter) -> None:
        floating = RecordingComponent(None, None, "floating")
        router.add_component(floating)

        assert await router.handle_touch(0, 0) is False
        assert router.component_count() == 1


class TestPages:
    @pytest.mark.asyncio
    async def test_switch_to_current_page_is_noop(self, router: DisplayRouter, mock_device: MockDevice) -> None:
        await router.switch_page(1)
        assert mock_device.draw_count == 0
        assert router.pages == [1]

    @pytest.mark.asyncio
    async def test_switch_page_renders_and_creates_lazily(self, router: DisplayRouter, mock_device: MockDevice) -> None:
        await router.switch_page(3)

        assert router.current_page == 3
        assert router.pages == [1, 3]
        assert mock_device.draw_count == 1

    @pytest.mark.asyncio
    async def test_touches_go_to_current_page_only(self, router: DisplayRouter) -> None:
        first = RecordingComponent(0, 0, "first")
        second = RecordingComponent(0, 0, "second")
        router.add_component(first, page=1)
        router.add_component(second, page=2)

        await router.switch_page(2)
        await router.handle_touch(0, 0)

        assert second.touches == [(0, 0)]
        assert first.touches == []

    def test_named_lookup(self, router: DisplayRouter) -> None:
        clock = RecordingComponent(0, 0, "clock")
        router.add_component(clock, page=2, name="clock")

        assert router.get_component("clock", page=2) is clock
        assert router.get_component("clock") is None
        assert router.find(RecordingComponent, 2) == [clock]
        assert router.find_all(RecordingComponent) == [clock]

    def test_clear_page_cleans_up(self, router: DisplayRouter) -> None:
        component = RecordingComponent(0, 0)
        router.add_component(component, name="c")

        router.clear_page(1)

        assert component.cleanups == 1
        assert router.component_count(1) == 0
        assert router.get_component("c") is None
        assert router.current_page == 1


class TestRendering:
    @pytest.mark.asyncio
    async def test_draw_in_insertion_order_with_isolation(self, router: DisplayRouter, mock_device: MockDevice) -> None:
        first = RecordingComponent(0, 0)
        broken = RecordingComponent(1, 0, fails=True)
        last = RecordingComponent(4, 2)
        hidden = RecordingComponent(None, None)
        router.add_components([first, broken, last, hidden])

        await router.update()

        assert first.draws == [CellRect(15, 0, 90, 90)]
        assert last.draws == [CellRect(375, 180, 90, 90)]
        assert hidden.draws == []
        assert "center" in mock_device.last_images

    @pytest.mark.asyncio
    async def test_full_screen_draws_grid_rect(self, router: DisplayRouter) -> None:
        overlay = RecordingComponent(0, 0)
        overlay.full_screen = True
        router.add_component(overlay)

        await router.update()
        assert overlay.draws == [CellRect(15, 0, 450, 270)]

    @pytest.mark.asyncio
    async def test_auto_update_survives_render_errors(self, geometry: GridGeometry) -> None:
        calls = 0

        async def flaky_draw(region, draw_fn) -> None:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("usb")

        screen = AsyncMock()
        screen.draw_screen.side_effect = flaky_draw
        router = DisplayRouter(screen, geometry)

        task = router.start_auto_update(0.01)
        await asyncio.sleep(0.05)
        await router.stop_auto_update(task)

        assert screen.draw_screen.await_count >= 2
        assert task.done()

    @pytest.mark.asyncio
    async def test_request_render_coalesces(self, geometry: GridGeometry) -> None:
        in_flight = 0
        peak = 0
        calls = 0

        async def slow_draw(region, draw_fn) -> None:
            nonlocal in_flight, peak, calls
            in_flight += 1
            calls += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.02)
            in_flight -= 1

        screen = AsyncMock()
        screen.draw_screen.side_effect = slow_draw
        router = DisplayRouter(screen, geometry)

        router.request_render()
        await asyncio.sleep(0.005)
        for _ in range(3):
            router.request_render()
        await asyncio.sleep(0.1)

        assert peak == 1
        # The in-flight render plus one folded follow-up
        assert calls == 2
