"""Network observer turning Playwright network events into observations.

This module hooks into Playwright ``response`` and ``requestfinished``
events and forwards a NetworkResponse observation for each to a callback.
Bodies are only read for XHR JSON responses, which may embed media URLs.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional, Set

from playwright.async_api import Page, Request, Response

from ..models.media import NetworkResponse

logger = logging.getLogger(__name__)

ObservationCallback = Callable[[NetworkResponse], None]


class NetworkObserver:
    """Observes page network traffic and emits NetworkResponse observations."""

    def __init__(self, page: Page, callback: ObservationCallback, json_body_limit: int = 200000):
        """Initialize network observer for a page.

        Args:
            page: Playwright page to observe
            callback: Receives every observation
            json_body_limit: Largest XHR JSON body read, in bytes
        """
        self.page = page
        self.callback = callback
        self.json_body_limit = json_body_limit
        self._pending: Set[asyncio.Task] = set()
        self.stats: Dict[str, int] = {
            'responses': 0,
            'requests_finished': 0,
            'json_bodies_read': 0,
            'errors': 0,
        }

        self._setup_listeners()

    def _setup_listeners(self) -> None:
        """Setup Playwright event listeners for network events."""
        self.page.on("response", self._on_response)
        self.page.on("requestfinished", self._on_request_finished)
        logger.debug("Network observer listeners setup complete")

    def _emit(self, observation: NetworkResponse) -> None:
        try:
            self.callback(observation)
        except Exception as e:
            self.stats['errors'] += 1
            logger.error(f"Error in network observation callback: {e}")

    @staticmethod
    def _content_type(response: Response) -> Optional[str]:
        try:
            headers = response.headers
        except Exception:
            return None
        return headers.get('content-type') or headers.get('Content-Type')

    @staticmethod
    def _wants_body(resource_type: Optional[str], content_type: Optional[str]) -> bool:
        return resource_type == 'xhr' and 'application/json' in (content_type or '').lower()

    def _on_response(self, response: Response) -> None:
        """Handle response received event.

        Args:
            response: Playwright response object
        """
        self.stats['responses'] += 1
        try:
            content_type = self._content_type(response)
            resource_type = response.request.resource_type
            observation = NetworkResponse(
                url=response.url,
                content_type=content_type,
                resource_type=resource_type,
            )
        except Exception as e:
            self.stats['errors'] += 1
            logger.debug(f"Failed to read response metadata: {e}")
            return

        if not self._wants_body(resource_type, content_type):
            self._emit(observation)
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._emit(observation)
            return
        task = loop.create_task(self._emit_with_body(response, observation))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _emit_with_body(self, response: Response, observation: NetworkResponse) -> None:
        """Read a JSON body (bounded) and emit the observation with it."""
        try:
            length = int(response.headers.get('content-length', 0) or 0)
            if length <= self.json_body_limit:
                text = await response.text()
                observation.body_text = text[:self.json_body_limit]
                self.stats['json_bodies_read'] += 1
        except Exception as e:
            logger.debug(f"Failed to read JSON body of {observation.url[:200]}: {e}")
        self._emit(observation)

    def _on_request_finished(self, request: Request) -> None:
        """Handle request finished event.

        Args:
            request: Playwright request object
        """
        self.stats['requests_finished'] += 1
        try:
            observation = NetworkResponse(
                url=request.url,
                resource_type=request.resource_type,
                event="requestfinished",
            )
        except Exception as e:
            self.stats['errors'] += 1
            logger.debug(f"Failed to read finished request: {e}")
            return
        self._emit(observation)

    async def drain(self, timeout: float = 2.0) -> None:
        """Wait (bounded) for in-flight body reads."""
        if not self._pending:
            return
        await asyncio.wait(list(self._pending), timeout=timeout)

    def __repr__(self) -> str:
        return (
            f"NetworkObserver(responses={self.stats['responses']}, "
            f"finished={self.stats['requests_finished']}, "
            f"pending={len(self._pending)})"
        )
