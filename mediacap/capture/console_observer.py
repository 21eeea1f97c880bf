"""Console observer for page instrumentation messages.

Listens to browser console output and forwards every ``CAPTURE::`` message
emitted by the injected instrumentation as a raw observation. All other
console traffic is ignored.
"""

import logging
from typing import Callable, Dict

from playwright.async_api import ConsoleMessage, Page

from ..models.media import RawObservation
from .instrumentation import CAPTURE_PREFIX, parse_console_text

logger = logging.getLogger(__name__)


class ConsoleObserver:
    """Observer for instrumentation console messages."""

    def __init__(self, page: Page, callback: Callable[[RawObservation], None]):
        """Initialize console observer for a page.

        Args:
            page: Playwright page to observe
            callback: Receives every decoded observation
        """
        self.page = page
        self.callback = callback
        self.stats: Dict[str, int] = {
            'capture_messages': 0,
            'malformed_messages': 0,
        }

        self._setup_listener()

    def _setup_listener(self) -> None:
        """Setup Playwright console event listener."""
        self.page.on("console", self._on_console_message)
        logger.debug("Console observer listener setup complete")

    def _on_console_message(self, message: ConsoleMessage) -> None:
        """Handle console message event.

        Args:
            message: Playwright console message
        """
        try:
            text = message.text
        except Exception as e:
            logger.debug(f"Unreadable console message: {e}")
            return

        if not text or not text.startswith(CAPTURE_PREFIX):
            return

        observation = parse_console_text(text)
        if observation is None:
            self.stats['malformed_messages'] += 1
            return

        self.stats['capture_messages'] += 1
        try:
            self.callback(observation)
        except Exception as e:
            logger.error(f"Error in console observation callback: {e}")

    def __repr__(self) -> str:
        return (
            f"ConsoleObserver(captured={self.stats['capture_messages']}, "
            f"malformed={self.stats['malformed_messages']})"
        )
