"""
Browser session management (Playwright async API).

One BrowserSession per run. Physical pages are wrapped in PageHandle so that
only one task at a time can drive navigation on a given page.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional, AsyncIterator

from playwright.async_api import async_playwright, Playwright, Browser, BrowserContext, Page

from ..config.pipeline_config import BrowserConfig


class PageHandle:
    """
    Mutex-guarded access to one physical page.

    Usage:
        async with handle.acquire() as page:
            await page.goto(url)
    """

    def __init__(self, page: Page, name: str = "page"):
        self._page = page
        self._lock = asyncio.Lock()
        self.name = name
        self.logger = logging.getLogger(self.__class__.__name__)

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Page]:
        async with self._lock:
            self.logger.debug(f"Acquired {self.name}")
            try:
                yield self._page
            finally:
                self.logger.debug(f"Released {self.name}")

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    async def close(self):
        async with self._lock:
            await self._page.close()


class BrowserSession:
    """
    Owns the Playwright driver, the browser and one context.

    Connects to an already running Chromium over CDP when `cdp_url` is set,
    otherwise launches a local one.
    """

    def __init__(self, config: BrowserConfig):
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._owns_context = False

    async def start(self) -> "BrowserSession":
        self._playwright = await async_playwright().start()

        if self.config.cdp_url:
            self.logger.info(f"Connecting to browser over CDP at {self.config.cdp_url}")
            self._browser = await self._playwright.chromium.connect_over_cdp(self.config.cdp_url)
            if self._browser.contexts:
                self._context = self._browser.contexts[0]
            else:
                self._context = await self._browser.new_context()
                self._owns_context = True
        else:
            self.logger.info(f"Launching Chromium (headless={self.config.headless})")
            self._browser = await self._playwright.chromium.launch(headless=self.config.headless)
            self._context = await self._browser.new_context()
            self._owns_context = True

        self._context.set_default_navigation_timeout(self.config.navigation_timeout_seconds * 1000)
        return self

    @property
    def context(self) -> BrowserContext:
        if self._context is None:
            raise RuntimeError("Browser session not started")
        return self._context

    async def new_handle(self, name: str) -> PageHandle:
        """A long-lived shared page."""
        page = await self.context.new_page()
        return PageHandle(page, name=name)

    @asynccontextmanager
    async def open_page(self) -> AsyncIterator[Page]:
        """A private page, closed when the block exits."""
        page = await self.context.new_page()
        try:
            yield page
        finally:
            try:
                await page.close()
            except Exception as e:
                self.logger.debug(f"Closing page failed: {e}")

    async def close(self):
        if self._context is not None and self._owns_context:
            await self._context.close()
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()

        self._context = self._browser = self._playwright = None
        self.logger.info("Browser session closed")

    async def __aenter__(self) -> "BrowserSession":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
