"""Session registry owning the lifetime of capture sessions.

Sessions are always addressed by identifier. The registry creates a
session's result store and broadcast hub, supervises its capture worker,
runs its inactivity timer and tears everything down exactly once when the
timer fires or the session is closed explicitly.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from ..models.media import MediaCandidate, MediaReference
from ..utils.url_canonicalizer import URLCanonicalizer
from .hub import BroadcastHub
from .store import ResultStore

logger = logging.getLogger(__name__)

WorkerFn = Callable[[str], Awaitable[None]]


class SessionNotFoundError(Exception):
    """Raised when a session identifier is unknown or expired."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Unknown or expired session: {session_id}")


class Session:
    """One bounded capture run against one target page."""

    def __init__(
        self,
        session_id: str,
        target_url: str,
        ttl_seconds: float,
        max_lifetime_seconds: float,
        store: ResultStore,
        hub: BroadcastHub,
        loop: asyncio.AbstractEventLoop,
    ):
        self.id = session_id
        self.target_url = target_url
        self.ttl_seconds = ttl_seconds
        self.created_at = datetime.utcnow()
        self.store = store
        self.hub = hub
        self.page: Any = None
        self.worker: Optional[asyncio.Task] = None
        self.closed = False

        self._loop = loop
        self._started = time.monotonic()
        self.hard_deadline = self._started + max_lifetime_seconds
        self.deadline = min(self._started + ttl_seconds, self.hard_deadline)
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.deadline

    @property
    def remaining_seconds(self) -> float:
        return max(0.0, self.deadline - time.monotonic())

    def attach_page(self, page: Any) -> bool:
        """Hand the session exclusive ownership of a page handle.

        Returns:
            False if the session is already closed; the caller keeps the page
        """
        if self.closed:
            return False
        self.page = page
        return True

    def ingest(self, candidate: MediaCandidate) -> Tuple[bool, Optional[MediaReference]]:
        """Accept a candidate and publish it if new, as one serialized step."""
        with self.hub.serialized():
            accepted, entry = self.store.accept(candidate)
            if accepted:
                self.hub.publish(entry)
        return accepted, entry

    def spawn(self, coro: Awaitable[Any]) -> Optional[asyncio.Task]:
        """Run a helper coroutine that is cancelled at teardown."""
        if self.closed:
            coro.close()
            return None
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_for_tasks(self, timeout: float) -> None:
        """Wait (bounded) for spawned helper tasks such as probes."""
        if self._tasks:
            await asyncio.wait(list(self._tasks), timeout=timeout)

    async def close(self) -> None:
        """Release the timer, subscribers, background tasks and page handle."""
        if self.closed:
            return
        self.closed = True

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        self.hub.close()

        current = asyncio.current_task()
        for task in [self.worker, *self._tasks]:
            if task is not None and task is not current and not task.done():
                task.cancel()

        page, self.page = self.page, None
        if page is not None:
            try:
                await page.close()
            except Exception as e:
                # The session is being discarded either way
                logger.debug(f"Ignoring page close failure for session {self.id}: {e}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.id,
            "target_url": self.target_url,
            "created_at": self.created_at,
            "ttl_ms": int(self.ttl_seconds * 1000),
            "expires_in_ms": int(self.remaining_seconds * 1000),
            "result_count": len(self.store),
            "counts_by_kind": self.store.counts_by_kind(),
            "subscriber_count": self.hub.subscriber_count,
            "capturing": self.worker is not None and not self.worker.done(),
        }

    def __repr__(self) -> str:
        return f"Session(id={self.id}, target={self.target_url}, results={len(self.store)}, closed={self.closed})"


class SessionRegistry:
    """Owns the set of live sessions."""

    def __init__(
        self,
        canonicalizer: Optional[URLCanonicalizer] = None,
        default_ttl_ms: int = 90000,
        max_lifetime_ms: int = 600000,
        subscriber_queue_size: int = 1000,
    ):
        """Initialize registry.

        Args:
            canonicalizer: Shared canonicalizer for every session's store
            default_ttl_ms: Inactivity timeout when create() gets none
            max_lifetime_ms: Hard bound on any session's lifetime
            subscriber_queue_size: Per-subscriber pending event limit
        """
        self.canonicalizer = canonicalizer or URLCanonicalizer()
        self.default_ttl_ms = default_ttl_ms
        self.max_lifetime_ms = max_lifetime_ms
        self.subscriber_queue_size = subscriber_queue_size
        self._sessions: Dict[str, Session] = {}
        self._teardowns: Set[asyncio.Task] = set()

    def create(
        self,
        target_url: str,
        ttl_ms: Optional[int] = None,
        worker: Optional[WorkerFn] = None,
    ) -> Session:
        """Create a session and start its inactivity timer and worker.

        Must be called from the event loop that will run the session.

        Args:
            target_url: Page to capture
            ttl_ms: Inactivity timeout override
            worker: Coroutine function run in the background with the session id

        Returns:
            The new session
        """
        loop = asyncio.get_running_loop()
        session_id = str(uuid.uuid4())
        ttl_ms = ttl_ms or self.default_ttl_ms

        store = ResultStore(self.canonicalizer, session_id=session_id)
        hub = BroadcastHub(session_id, store, max_queue=self.subscriber_queue_size)
        session = Session(
            session_id,
            target_url,
            ttl_seconds=ttl_ms / 1000.0,
            max_lifetime_seconds=max(self.max_lifetime_ms, ttl_ms) / 1000.0,
            store=store,
            hub=hub,
            loop=loop,
        )
        self._sessions[session_id] = session
        self._arm_timer(session)

        if worker is not None:
            session.worker = loop.create_task(self._supervise(session_id, worker))

        logger.info(f"Created session {session_id} for {target_url} (ttl={ttl_ms}ms)")
        return session

    async def _supervise(self, session_id: str, worker: WorkerFn) -> None:
        try:
            await worker(session_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Capture worker for session {session_id} failed: {e}", exc_info=True)

    def find(self, session_id: str) -> Optional[Session]:
        """Return a live session or None."""
        session = self._sessions.get(session_id)
        if session is None or session.closed or session.expired:
            return None
        return session

    def get(self, session_id: str) -> Session:
        """Resolve a live session.

        Raises:
            SessionNotFoundError: If the id is unknown or the session expired
        """
        session = self.find(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def touch(self, session_id: str) -> Session:
        """Reset a session's inactivity deadline.

        Raises:
            SessionNotFoundError: If the id is unknown or the session expired
        """
        session = self.get(session_id)
        session.deadline = min(time.monotonic() + session.ttl_seconds, session.hard_deadline)
        return session

    def _arm_timer(self, session: Session) -> None:
        if session._timer is not None:
            session._timer.cancel()
        delay = max(0.0, session.deadline - time.monotonic())
        session._timer = session._loop.call_later(delay, self._on_timer, session.id)

    def _on_timer(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is None or session.closed:
            return
        if not session.expired:
            # Touched since the timer was armed
            self._arm_timer(session)
            return

        logger.info(f"Session {session_id} expired")
        task = session._loop.create_task(self.destroy(session_id))
        self._teardowns.add(task)
        task.add_done_callback(self._teardowns.discard)

    async def destroy(self, session_id: str) -> bool:
        """Tear a session down. Idempotent.

        Returns:
            True if this call performed the teardown
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        await session.close()
        logger.info(f"Destroyed session {session_id} ({len(session.store)} results)")
        return True

    async def close_all(self) -> None:
        """Destroy every session (application shutdown)."""
        for session_id in list(self._sessions):
            await self.destroy(session_id)

    def list_sessions(self) -> List[Session]:
        return [s for s in self._sessions.values() if not s.closed and not s.expired]

    def __len__(self) -> int:
        return len(self.list_sessions())

    def __contains__(self, session_id: str) -> bool:
        return self.find(session_id) is not None
