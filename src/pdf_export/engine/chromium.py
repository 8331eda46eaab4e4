"""Playwright-backed Chromium engine."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from ..config import Viewport
from ..errors import EngineError, SessionError
from ..settings import EngineSettings, get_settings

LOGGER = logging.getLogger(__name__)

PAGE_CLOSE_TIMEOUT_S = 10.0


class ChromiumSession:
    def __init__(self, page: Page) -> None:
        self._page = page

    async def navigate(self, url: str, *, timeout_ms: int) -> None:
        try:
            await self._page.goto(url, wait_until="networkidle", timeout=timeout_ms)
        except PlaywrightError as exc:
            raise SessionError(f"Navigation to {url} failed: {exc}") from exc

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        try:
            return await self._page.evaluate(expression, arg)
        except PlaywrightError as exc:
            raise SessionError(f"Script evaluation failed: {exc}") from exc

    async def add_style(self, css: str) -> None:
        try:
            await self._page.add_style_tag(content=css)
        except PlaywrightError as exc:
            raise SessionError(f"Stylesheet injection failed: {exc}") from exc

    async def print_pdf(self, **options: Any) -> bytes:
        try:
            return await self._page.pdf(**options)
        except PlaywrightError as exc:
            raise SessionError(f"PDF printing failed: {exc}") from exc


class ChromiumEngine:
    """One headless Chromium per batch; one page per :meth:`session`."""

    def __init__(self, settings: EngineSettings | None = None) -> None:
        self._settings = settings or get_settings()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    async def start(self) -> None:
        if self._browser is not None:
            return
        settings = self._settings
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=settings.headless,
                args=settings.launch_args(),
                executable_path=settings.executable_path,
                channel=settings.channel,
            )
        except PlaywrightError as exc:
            await self.stop()
            raise EngineError(f"Failed to launch Chromium: {exc}") from exc
        LOGGER.debug("Chromium %s launched", self._browser.version)

    async def stop(self) -> None:
        browser, self._browser = self._browser, None
        driver, self._playwright = self._playwright, None
        try:
            if browser is not None:
                await browser.close()
        finally:
            if driver is not None:
                await driver.stop()

    @asynccontextmanager
    async def session(self, viewport: Viewport) -> AsyncIterator[ChromiumSession]:
        if self._browser is None:
            raise EngineError("Chromium is not running")
        try:
            page = await self._browser.new_page(
                viewport={"width": viewport.width, "height": viewport.height},
                device_scale_factor=viewport.device_scale_factor,
            )
        except PlaywrightError as exc:
            raise SessionError(f"Could not open a page: {exc}") from exc
        try:
            yield ChromiumSession(page)
        finally:
            try:
                await asyncio.wait_for(page.close(), timeout=PAGE_CLOSE_TIMEOUT_S)
            except (PlaywrightError, asyncio.TimeoutError) as exc:
                LOGGER.warning("Failed to close page: %s", str(exc) or type(exc).__name__)


__all__ = ["ChromiumEngine", "ChromiumSession"]
