"""Capture service layer tying sessions, capture and relay together.

This module provides the business logic behind the HTTP and CLI surfaces:
starting sessions with a background capture worker, feeding observations
through normalization into a session's store and hub, enrichment probes,
subscriptions and the media relay.
"""

import asyncio
import logging
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple

from ..capture.browser_factory import BrowserConfig, BrowserFactory
from ..capture.normalizer import CaptureNormalizer
from ..capture.page_session import CaptureWorker, PageSessionConfig
from ..config.settings import MediaCapConfig
from ..models.media import MediaReference, RawObservation
from ..relay.fetcher import RelayBody, RelayFetcher
from ..utils.url_canonicalizer import URLCanonicalizer
from .hub import Subscriber
from .registry import Session, SessionNotFoundError, SessionRegistry

logger = logging.getLogger(__name__)

CaptureFn = Callable[["CaptureService", Session], Awaitable[Any]]


async def capture_with_browser(service: "CaptureService", session: Session) -> Dict[str, Any]:
    """Default capture: render the target page in the shared browser."""
    worker = CaptureWorker(
        service.browser_factory,
        service.page_config,
        on_observation=lambda observation: service.ingest(session.id, observation),
        attach_page=session.attach_page,
    )
    return await worker.run(session.target_url)


class CaptureService:
    """Service layer for capture session operations."""

    def __init__(
        self,
        config: Optional[MediaCapConfig] = None,
        browser_factory: Optional[BrowserFactory] = None,
        relay: Optional[RelayFetcher] = None,
        capture_fn: Optional[CaptureFn] = None,
    ):
        """Initialize the capture service.

        Args:
            config: Application configuration (defaults to built-in defaults)
            browser_factory: Shared browser factory
            relay: Relay fetcher for probes and proxying
            capture_fn: Coroutine run as each session's worker
        """
        self.config = config or MediaCapConfig()
        self.canonicalizer = URLCanonicalizer.from_settings(self.config.urls)
        self.registry = SessionRegistry(
            self.canonicalizer,
            default_ttl_ms=self.config.sessions.ttl_ms,
            max_lifetime_ms=self.config.sessions.max_lifetime_ms,
            subscriber_queue_size=self.config.sessions.subscriber_queue_size,
        )
        self.normalizer = CaptureNormalizer(json_body_limit=self.config.capture.json_body_limit)
        self.page_config = PageSessionConfig.from_settings(self.config.capture)
        self.browser_factory = browser_factory or BrowserFactory(
            BrowserConfig.from_settings(self.config.browser)
        )
        self.relay = relay or RelayFetcher(
            timeout_seconds=self.config.relay.timeout_seconds,
            probe_timeout_seconds=self.config.relay.probe_timeout_seconds,
            chunk_size=self.config.relay.chunk_size,
            max_concurrent_probes=self.config.relay.max_concurrent_probes,
            user_agent=self.config.relay.user_agent,
        )
        self.capture_fn = capture_fn or capture_with_browser
        self.started_at = time.monotonic()

        logger.info(
            f"CaptureService initialized (environment={self.config.environment}, "
            f"engine={self.config.browser.engine}, probes={self.config.relay.probe_enabled})"
        )

    @property
    def heartbeat_seconds(self) -> float:
        return self.config.sessions.heartbeat_seconds

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self.started_at

    def start_session(self, target_url: str, ttl_ms: Optional[int] = None) -> Session:
        """Create a session and start capturing in the background.

        Returns immediately; capture proceeds in the session's worker.

        Args:
            target_url: Page to capture
            ttl_ms: Inactivity timeout override

        Returns:
            The new session
        """
        return self.registry.create(target_url, ttl_ms=ttl_ms, worker=self._run_capture)

    async def _run_capture(self, session_id: str) -> None:
        session = self.registry.find(session_id)
        if session is None:
            return
        stats = await self.capture_fn(self, session)
        logger.info(f"Capture worker for session {session_id} finished: {stats}")

    def ingest(self, session_id: str, observation: RawObservation) -> int:
        """Feed one raw observation into a session's pipeline.

        Observations for sessions that no longer exist are dropped.

        Args:
            session_id: Target session
            observation: Raw observation from any source

        Returns:
            Number of new entries accepted
        """
        session = self.registry.find(session_id)
        if session is None:
            return 0
        self.registry.touch(session_id)

        accepted_count = 0
        for candidate in self.normalizer.normalize(observation):
            accepted, entry = session.ingest(candidate)
            if not accepted:
                continue
            accepted_count += 1
            if self.config.relay.probe_enabled and entry.canonical_url.startswith(("http://", "https://")):
                session.spawn(self._probe(session_id, entry.canonical_url, session.target_url))
        return accepted_count

    async def _probe(self, session_id: str, canonical_url: str, referer: str) -> None:
        result = await self.relay.probe(canonical_url, referer=referer)
        if result.error:
            logger.debug(f"Probe for {canonical_url[:200]} failed: {result.error}")
        session = self.registry.find(session_id)
        if session is not None:
            session.store.apply_probe(canonical_url, result)

    def get_session(self, session_id: str) -> Session:
        """Resolve a live session.

        Raises:
            SessionNotFoundError: If the id is unknown or the session expired
        """
        return self.registry.get(session_id)

    def results(self, session_id: str) -> List[MediaReference]:
        """Current ordered results of a session.

        Raises:
            SessionNotFoundError: If the id is unknown or the session expired
        """
        return self.registry.touch(session_id).store.all()

    def subscribe(self, session_id: str) -> Subscriber:
        """Attach a subscriber to a session, replaying its history.

        Raises:
            SessionNotFoundError: If the id is unknown or the session expired
        """
        session = self.registry.touch(session_id)
        return session.hub.subscribe()

    def unsubscribe(self, session_id: str, subscriber: Subscriber) -> None:
        """Detach a subscriber; the session itself is unaffected."""
        session = self.registry.find(session_id)
        if session is not None:
            session.hub.unsubscribe(subscriber)
        else:
            subscriber.close()

    def stream(self, session_id: str) -> AsyncIterator[Dict[str, Any]]:
        """Subscribe now and return the subscription's event iterator.

        Heartbeats count as activity and keep the session alive while a
        viewer is connected, up to the session's maximum lifetime.

        Raises:
            SessionNotFoundError: If the id is unknown or the session expired
        """
        subscriber = self.subscribe(session_id)
        return self.events(session_id, subscriber)

    async def events(self, session_id: str, subscriber: Subscriber) -> AsyncIterator[Dict[str, Any]]:
        """Iterate a subscription; it is detached when iteration ends."""
        try:
            async for event in subscriber.events(heartbeat_interval=self.heartbeat_seconds):
                if event.get("type") == "heartbeat" and session_id in self.registry:
                    self.registry.touch(session_id)
                yield event
        finally:
            self.unsubscribe(session_id, subscriber)

    async def close_session(self, session_id: str) -> None:
        """Explicitly end a session.

        Raises:
            SessionNotFoundError: If the id is unknown or the session expired
        """
        self.registry.get(session_id)
        await self.registry.destroy(session_id)

    async def capture_once(self, target_url: str, probe_wait_seconds: float = 5.0) -> List[MediaReference]:
        """Run one session until its capture worker finishes and return results.

        Args:
            target_url: Page to capture
            probe_wait_seconds: Bound on waiting for in-flight probes

        Returns:
            Ordered results (possibly empty)
        """
        ttl_ms = max(self.config.sessions.ttl_ms, self.config.sessions.max_lifetime_ms)
        session = self.start_session(target_url, ttl_ms=ttl_ms)
        try:
            if session.worker is not None:
                await asyncio.wait({session.worker})
            await session.wait_for_tasks(probe_wait_seconds)
            return session.store.all()
        finally:
            await self.registry.destroy(session.id)

    async def proxy(
        self,
        url: str,
        range_header: Optional[str] = None,
    ) -> Tuple[int, Dict[str, str], RelayBody]:
        """Open a relayed fetch of a media URL.

        Raises:
            RelayError: If the origin is unreachable or refuses
        """
        return await self.relay.open_stream(url, range_header=range_header)

    def health(self) -> Dict[str, Any]:
        return {
            "active_sessions": len(self.registry),
            "browser_running": self.browser_factory.is_running,
            "uptime_seconds": round(self.uptime_seconds, 1),
        }

    async def shutdown(self) -> None:
        """Destroy all sessions and release the browser and relay."""
        logger.info("Shutting down capture service")
        await self.registry.close_all()
        await self.browser_factory.stop()
        await self.relay.close()

    def __repr__(self) -> str:
        return f"CaptureService(sessions={len(self.registry)}, browser={self.browser_factory!r})"


__all__ = [
    "CaptureService",
    "CaptureFn",
    "capture_with_browser",
    "SessionNotFoundError",
]
