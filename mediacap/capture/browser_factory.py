"""Browser factory for launching Playwright and handing out capture pages.

This module provides the BrowserFactory class that handles browser lifecycle
management. The browser is launched lazily on first use and shared by every
session; each session gets its own page in an isolated browser context.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from playwright.async_api import (
    Browser,
    Page,
    Playwright,
    async_playwright,
)

from ..config.settings import BrowserSettings

logger = logging.getLogger(__name__)


class BrowserEngineType:
    """Supported browser engine types."""
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class BrowserConfig:
    """Configuration for browser launch and page context setup."""

    def __init__(
        self,
        engine: str = BrowserEngineType.CHROMIUM,
        headless: bool = True,
        viewport: Optional[Dict[str, int]] = None,
        user_agent: Optional[str] = None,
        ignore_https_errors: bool = True,
        extra_args: Optional[List[str]] = None,
        **kwargs
    ):
        """Initialize browser configuration.

        Args:
            engine: Browser engine to use (chromium, firefox, webkit)
            headless: Run browser in headless mode
            viewport: Viewport size dict with 'width' and 'height'
            user_agent: Custom User-Agent string
            ignore_https_errors: Ignore SSL/TLS certificate errors
            extra_args: Extra command line arguments for the browser
        """
        self.engine = engine
        self.headless = headless
        self.viewport = viewport or {'width': 1366, 'height': 768}
        self.user_agent = user_agent
        self.ignore_https_errors = ignore_https_errors
        self.extra_args = extra_args or []
        self.extra_options = kwargs

    @classmethod
    def from_settings(cls, settings: BrowserSettings) -> "BrowserConfig":
        """Build from the browser section of the configuration."""
        return cls(
            engine=settings.engine,
            headless=settings.headless,
            viewport={'width': settings.viewport_width, 'height': settings.viewport_height},
            user_agent=settings.user_agent,
            ignore_https_errors=settings.ignore_https_errors,
            extra_args=settings.extra_args,
        )

    def to_browser_options(self) -> Dict[str, Any]:
        """Convert to Playwright browser launch options."""
        options: Dict[str, Any] = {'headless': self.headless}
        if self.extra_args:
            options['args'] = list(self.extra_args)
        options.update(self.extra_options)
        return options

    def to_context_options(self) -> Dict[str, Any]:
        """Convert to Playwright page/context options."""
        options: Dict[str, Any] = {}
        if self.viewport:
            options['viewport'] = self.viewport
        if self.user_agent:
            options['user_agent'] = self.user_agent
        if self.ignore_https_errors:
            options['ignore_https_errors'] = True
        return options


class BrowserFactory:
    """Factory for the shared Playwright browser."""

    def __init__(self, config: Optional[BrowserConfig] = None):
        """Initialize browser factory with configuration.

        Args:
            config: Browser configuration object
        """
        self.config = config or BrowserConfig()
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self._start_lock = asyncio.Lock()
        self._page_count = 0

    async def start(self) -> None:
        """Start Playwright and launch browser. No-op when already running."""
        async with self._start_lock:
            if self.browser is not None:
                return

            logger.info(f"Starting browser factory with engine: {self.config.engine}")

            try:
                self.playwright = await async_playwright().start()

                if self.config.engine == BrowserEngineType.FIREFOX:
                    browser_type = self.playwright.firefox
                elif self.config.engine == BrowserEngineType.WEBKIT:
                    browser_type = self.playwright.webkit
                else:
                    browser_type = self.playwright.chromium

                self.browser = await browser_type.launch(**self.config.to_browser_options())
                logger.info(f"Browser launched successfully (headless={self.config.headless})")

            except Exception as e:
                logger.error(f"Failed to start browser: {e}")
                await self._teardown()
                raise

    async def stop(self) -> None:
        """Stop browser and cleanup resources."""
        logger.info("Stopping browser factory")
        async with self._start_lock:
            await self._teardown()

    async def _teardown(self) -> None:
        try:
            if self.browser:
                await self.browser.close()
            if self.playwright:
                await self.playwright.stop()
        except Exception as e:
            logger.error(f"Error stopping browser factory: {e}")
        finally:
            self.browser = None
            self.playwright = None

    async def new_page(self) -> Page:
        """Open a page in a fresh context; closing the page closes the context.

        Returns:
            New Playwright page owned by the caller
        """
        if self.browser is None:
            await self.start()

        page = await self.browser.new_page(**self.config.to_context_options())
        self._page_count += 1
        logger.debug(f"Opened capture page #{self._page_count}")
        return page

    @property
    def is_running(self) -> bool:
        """Check if browser factory is running."""
        if self.browser is None:
            return False
        try:
            return self.browser.is_connected()
        except Exception:
            return False

    @property
    def page_count(self) -> int:
        """Pages opened since start."""
        return self._page_count

    def __repr__(self) -> str:
        return (
            f"BrowserFactory(engine={self.config.engine}, "
            f"headless={self.config.headless}, "
            f"running={self.is_running}, "
            f"pages={self.page_count})"
        )
