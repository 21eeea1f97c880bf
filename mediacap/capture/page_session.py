"""Capture worker driving one rendered page for one session.

The worker opens a page, wires the network and console observers to the
session's observation callback, injects the page instrumentation, navigates
to the target and keeps the page alive for a short dwell so late dynamic
loads are still observed. Navigation failures are logged and the capture
continues with whatever was already observed.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from ..config.settings import CaptureSettings
from ..models.media import DomBatch, RawObservation
from .browser_factory import BrowserFactory
from .console_observer import ConsoleObserver
from .instrumentation import DOM_SCAN_SCRIPT, build_instrumentation_script
from .network_observer import NetworkObserver

logger = logging.getLogger(__name__)


class WaitStrategy:
    """Navigation completion events accepted by Playwright's goto."""
    NETWORKIDLE = "networkidle"
    LOAD = "load"
    DOMCONTENTLOADED = "domcontentloaded"
    COMMIT = "commit"


class PageSessionConfig:
    """Configuration for one page capture."""

    def __init__(
        self,
        wait_until: str = WaitStrategy.NETWORKIDLE,
        navigation_timeout_ms: int = 60000,
        dwell_ms: int = 1800,
        inject_instrumentation: bool = True,
        json_body_limit: int = 200000,
        json_preview_limit: int = 8000,
    ):
        """Initialize page capture configuration.

        Args:
            wait_until: Navigation completion event
            navigation_timeout_ms: Navigation timeout; 0 disables it
            dwell_ms: Time the page stays open after navigation
            inject_instrumentation: Install the fetch/XHR/DOM hooks
            json_body_limit: Largest XHR JSON body read by the network observer
            json_preview_limit: JSON preview length sent by the page hooks
        """
        self.wait_until = wait_until
        self.navigation_timeout_ms = navigation_timeout_ms
        self.dwell_ms = dwell_ms
        self.inject_instrumentation = inject_instrumentation
        self.json_body_limit = json_body_limit
        self.json_preview_limit = json_preview_limit

    @classmethod
    def from_settings(cls, settings: CaptureSettings) -> "PageSessionConfig":
        return cls(
            wait_until=settings.wait_until,
            navigation_timeout_ms=settings.navigation_timeout_ms,
            dwell_ms=settings.dwell_ms,
            inject_instrumentation=settings.inject_instrumentation,
            json_body_limit=settings.json_body_limit,
            json_preview_limit=settings.json_preview_limit,
        )


class CaptureWorker:
    """Runs one page capture and reports observations through a callback."""

    def __init__(
        self,
        factory: BrowserFactory,
        config: Optional[PageSessionConfig] = None,
        on_observation: Optional[Callable[[RawObservation], None]] = None,
        attach_page: Optional[Callable[[Page], bool]] = None,
    ):
        """Initialize capture worker.

        Args:
            factory: Browser factory handing out pages
            config: Page capture configuration
            on_observation: Receives every raw observation
            attach_page: Hands the opened page to its owner; returning False
                means the owner is gone and the worker must close the page
        """
        self.factory = factory
        self.config = config or PageSessionConfig()
        self.on_observation = on_observation or (lambda observation: None)
        self.attach_page = attach_page or (lambda page: True)

        self.page: Optional[Page] = None
        self.network_observer: Optional[NetworkObserver] = None
        self.console_observer: Optional[ConsoleObserver] = None
        self.navigation_error: Optional[str] = None
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    async def run(self, target_url: str) -> Dict[str, Any]:
        """Capture a page until the dwell period is over.

        The page itself is owned by whoever attach_page handed it to and is
        not closed here.

        Args:
            target_url: Page to render

        Returns:
            Capture statistics
        """
        self.start_time = time.monotonic()
        logger.info(f"Starting page capture: {target_url}")

        page = await self.factory.new_page()
        if not self.attach_page(page):
            logger.info(f"Capture for {target_url} abandoned before navigation")
            await page.close()
            return self.get_stats()
        self.page = page

        self.network_observer = NetworkObserver(page, self.on_observation, self.config.json_body_limit)
        self.console_observer = ConsoleObserver(page, self.on_observation)

        if self.config.inject_instrumentation:
            await self._inject_instrumentation()

        await self._navigate(target_url)
        await self._final_dom_scan()

        if self.config.dwell_ms > 0:
            await asyncio.sleep(self.config.dwell_ms / 1000.0)
        await self.network_observer.drain()

        self.end_time = time.monotonic()
        stats = self.get_stats()
        logger.info(
            f"Page capture finished: {target_url} "
            f"({stats['responses']} responses, {stats['capture_messages']} hook messages)"
        )
        return stats

    async def _inject_instrumentation(self) -> None:
        script = build_instrumentation_script(self.config.json_preview_limit)
        try:
            await self.page.add_init_script(script=script)
        except Exception as e:
            logger.warning(f"Failed to inject page instrumentation: {e}")

    async def _navigate(self, target_url: str) -> None:
        """Navigate, treating failure as the end of navigation, not of capture."""
        try:
            await self.page.goto(
                target_url,
                wait_until=self.config.wait_until,
                timeout=self.config.navigation_timeout_ms,
            )
        except PlaywrightTimeoutError:
            self.navigation_error = "timeout"
            logger.warning(
                f"Navigation to {target_url} did not reach '{self.config.wait_until}' "
                f"within {self.config.navigation_timeout_ms}ms, continuing"
            )
        except Exception as e:
            self.navigation_error = str(e)
            logger.warning(f"Navigation to {target_url} failed: {e}")

    async def _final_dom_scan(self) -> None:
        try:
            items: List[str] = await self.page.evaluate(DOM_SCAN_SCRIPT)
        except Exception as e:
            logger.debug(f"Final DOM scan failed: {e}")
            return
        if items:
            self.on_observation(DomBatch(items=[i for i in items if isinstance(i, str)], source="dom-final"))

    def get_stats(self) -> Dict[str, Any]:
        """Get capture statistics."""
        stats: Dict[str, Any] = {
            'responses': 0,
            'requests_finished': 0,
            'capture_messages': 0,
            'navigation_error': self.navigation_error,
            'duration_ms': None,
        }
        if self.network_observer:
            stats['responses'] = self.network_observer.stats['responses']
            stats['requests_finished'] = self.network_observer.stats['requests_finished']
        if self.console_observer:
            stats['capture_messages'] = self.console_observer.stats['capture_messages']
        if self.start_time is not None and self.end_time is not None:
            stats['duration_ms'] = round((self.end_time - self.start_time) * 1000, 1)
        return stats

    def __repr__(self) -> str:
        return f"CaptureWorker(page={'open' if self.page else 'none'}, navigation_error={self.navigation_error!r})"
