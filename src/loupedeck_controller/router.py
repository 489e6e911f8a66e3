"""Paged grid of components with layered touch dispatch."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol, TypeVar

from PIL import ImageDraw

from loupedeck_controller.components.base import VisualComponent
from loupedeck_controller.device import DrawCallback
from loupedeck_controller.geometry import GridGeometry

logger = logging.getLogger(__name__)

Cell = tuple[int, int]
T = TypeVar("T", bound=VisualComponent)


class ScreenTarget(Protocol):
    async def draw_screen(self, region: str, draw_fn: DrawCallback) -> None: ...


@dataclass
class Page:
    """Components of one page.

    ``components`` is in insertion order, which is draw order; the last
    component added at a cell is the topmost one for touches.
    """

    number: int
    components: list[VisualComponent] = field(default_factory=list)
    index: dict[Cell, list[VisualComponent]] = field(default_factory=dict)
    named: dict[str, VisualComponent] = field(default_factory=dict)

    def clear(self) -> None:
        self.components.clear()
        self.index.clear()
        self.named.clear()


class DisplayRouter:
    """Draws the current page and routes touches to its components."""

    REGION = "center"

    def __init__(self, screen: ScreenTarget, geometry: GridGeometry) -> None:
        """Initialize the router with an empty page 1.

        Args:
            screen: Anything that can draw a display region, normally the device session.
            geometry: Grid geometry of the device.
        """
        self.screen = screen
        self.geometry = geometry
        self._pages: dict[int, Page] = {1: Page(1)}
        self._current = 1
        self._render_lock = asyncio.Lock()
        self._render_task: asyncio.Task[None] | None = None
        self._render_pending = False

    @property
    def current_page(self) -> int:
        return self._current

    @property
    def pages(self) -> list[int]:
        return sorted(self._pages)

    def component_count(self, page: int | None = None) -> int:
        found = self._pages.get(self._current if page is None else page)
        return len(found.components) if found else 0

    def _page(self, number: int) -> Page:
        if number not in self._pages:
            logger.debug("Creating page %d", number)
            self._pages[number] = Page(number)
        return self._pages[number]

    def _cell_in_grid(self, col: int, row: int) -> bool:
        return 0 <= col < self.geometry.columns and 0 <= row < self.geometry.rows

    def add_component(self, component: VisualComponent, page: int = 1, name: str | None = None) -> None:
        """Add a component on top of whatever already occupies its cell."""
        target = self._page(page)
        target.components.append(component)
        if name:
            target.named[name] = component

        if component.full_screen:
            for row in range(self.geometry.rows):
                for col in range(self.geometry.columns):
                    target.index.setdefault((col, row), []).append(component)
        elif component.positioned:
            if self._cell_in_grid(component.col, component.row):
                target.index.setdefault((component.col, component.row), []).append(component)
            else:
                logger.warning("Component %r is outside the %dx%d grid", component, self.geometry.columns, self.geometry.rows)
        logger.debug("Added %r to page %d", component, page)

    def add_components(self, components: list[VisualComponent], page: int = 1) -> None:
        for component in components:
            self.add_component(component, page)

    def clear_page(self, page: int) -> None:
        """Remove every component of a page, cleaning up their timers."""
        target = self._pages.get(page)
        if target is None:
            return
        for component in target.components:
            try:
                component.cleanup()
            except Exception:
                logger.exception("Cleanup failed for %r", component)
        target.clear()

    def get_component(self, name: str, page: int | None = None) -> VisualComponent | None:
        """Look up a named component on a page (current page by default)."""
        target = self._pages.get(self._current if page is None else page)
        return target.named.get(name) if target else None

    def components(self, page: int | None = None) -> list[VisualComponent]:
        target = self._pages.get(self._current if page is None else page)
        return list(target.components) if target else []

    def find(self, kind: type[T], page: int | None = None) -> list[T]:
        """Components of a given class on a page (current page by default)."""
        return [c for c in self.components(page) if isinstance(c, kind)]

    def find_all(self, kind: type[T]) -> list[T]:
        """Components of a given class on every page, current page first."""
        found = self.find(kind)
        for number in self.pages:
            if number != self._current:
                found.extend(self.find(kind, number))
        return found

    def draw(self, draw: ImageDraw.ImageDraw) -> None:
        """Draw background, grid and every component of the current page."""
        self.geometry.clear_background(draw)
        self.geometry.draw_grid(draw)

        for component in self._pages[self._current].components:
            if component.full_screen:
                rect = self.geometry.grid_rect()
            elif component.positioned and self._cell_in_grid(component.col, component.row):
                rect = self.geometry.cell_rect(component.col, component.row)
            else:
                continue
            try:
                component.draw(draw, rect)
            except Exception:
                logger.exception("Failed to draw %r", component)

    async def handle_touch(self, col: int, row: int) -> bool:
        """Offer a touch to the components at (col, row), topmost first.

        Returns:
            True if a component handled it.
        """
        candidates = list(self._pages[self._current].index.get((col, row), ()))
        for component in reversed(candidates):
            try:
                if await component.handle_touch(col, row):
                    logger.debug("Touch (%d, %d) handled by %r", col, row, component)
                    return True
            except Exception:
                logger.exception("Touch handler of %r failed", component)
        logger.debug("Touch (%d, %d) not handled", col, row)
        return False

    async def switch_page(self, page: int) -> None:
        if page == self._current:
            return
        self._page(page)
        self._current = page
        logger.info("Switched to page %d", page)
        await self.update()

    async def update(self) -> None:
        """Render the current page to the device. Renders never overlap."""
        async with self._render_lock:
            await self.screen.draw_screen(self.REGION, self.draw)

    def request_render(self) -> None:
        """Schedule a render, folding requests made while one is in flight."""
        if self._render_task is not None and not self._render_task.done():
            self._render_pending = True
            return
        self._render_task = asyncio.get_running_loop().create_task(self._render_requested(), name="render-request")

    async def _render_requested(self) -> None:
        while True:
            self._render_pending = False
            try:
                await self.update()
            except Exception as e:
                logger.error("Render failed: %s", e)
            if not self._render_pending:
                return

    def start_auto_update(self, interval: float = 1.0) -> asyncio.Task[None]:
        """Render now and then every interval seconds until the task is stopped."""
        return asyncio.get_running_loop().create_task(self._auto_update(interval), name="render-loop")

    async def _auto_update(self, interval: float) -> None:
        logger.debug("Render loop started (%.2fs)", interval)
        while True:
            try:
                await self.update()
            except Exception as e:
                logger.error("Render failed: %s", e)
            await asyncio.sleep(interval)

    async def stop_auto_update(self, task: asyncio.Task[None] | None) -> None:
        """Cancel a render loop task and any pending requested render."""
        for pending in (task, self._render_task):
            if pending is None or pending.done():
                continue
            pending.cancel()
            try:
                await pending
            except asyncio.CancelledError:
                pass
        self._render_task = None
