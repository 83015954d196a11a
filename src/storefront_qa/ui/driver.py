"""Browser page abstraction for UI scenarios.

UI scenarios talk to a :class:`PageDriver`, never to Playwright directly,
so the runner can be exercised with an in-memory fake. The Playwright
adapter below is the production implementation.

Usage::

    async with open_browser(settings) as driver:
        runner = UiScenarioRunner(driver, settings)
        await runner.run_all(storefront_ui_scenarios())
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Protocol
from urllib.parse import urljoin

from playwright.async_api import Page, async_playwright

from storefront_qa.config import RunSettings
from storefront_qa.observability import get_logger

logger = get_logger(__name__)

DEFAULT_VIEWPORT = {'width': 1366, 'height': 900}


class PageDriver(Protocol):
    """The page operations UI scenarios need."""

    async def goto(self, path: str) -> None: ...

    async def wait_for_load(self) -> None: ...

    async def title(self) -> str: ...

    async def count(self, selector: str) -> int: ...

    async def is_visible(self, selector: str) -> bool: ...

    async def fill(self, selector: str, value: str) -> None: ...

    async def press(self, selector: str, key: str) -> None: ...


class PlaywrightDriver:
    """:class:`PageDriver` backed by a Playwright async ``Page``.

    Element operations act on the first match of *selector*.
    """

    def __init__(self, page: Page, base_url: str, *, timeout_ms: int = 30_000) -> None:
        self._page = page
        self._base_url = base_url.rstrip('/') + '/'
        self._timeout_ms = timeout_ms

    @property
    def page(self) -> Page:
        return self._page

    def url_for(self, path: str) -> str:
        return urljoin(self._base_url, path.lstrip('/'))

    async def goto(self, path: str) -> None:
        url = self.url_for(path)
        logger.debug('page_goto', url=url)
        await self._page.goto(url, timeout=self._timeout_ms)

    async def wait_for_load(self) -> None:
        await self._page.wait_for_load_state('networkidle', timeout=self._timeout_ms)

    async def title(self) -> str:
        return await self._page.title()

    async def count(self, selector: str) -> int:
        return await self._page.locator(selector).count()

    async def is_visible(self, selector: str) -> bool:
        return await self._page.locator(selector).first.is_visible()

    async def fill(self, selector: str, value: str) -> None:
        await self._page.locator(selector).first.fill(value, timeout=self._timeout_ms)

    async def press(self, selector: str, key: str) -> None:
        await self._page.locator(selector).first.press(key, timeout=self._timeout_ms)


@asynccontextmanager
async def open_browser(
    settings: RunSettings,
    *,
    headless: bool = True,
) -> AsyncIterator[PlaywrightDriver]:
    """Launch Chromium and yield a driver for one fresh page.

    The browser is closed on exit, including when the body raises.
    """
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=headless)
        try:
            context = await browser.new_context(viewport=DEFAULT_VIEWPORT)
            page = await context.new_page()
            logger.info('browser_opened', ui_base_url=settings.ui_base_url, headless=headless)
            yield PlaywrightDriver(
                page,
                settings.ui_base_url,
                timeout_ms=int(settings.timeout_seconds * 1000),
            )
        finally:
            await browser.close()
