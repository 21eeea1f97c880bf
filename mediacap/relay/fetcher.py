"""Relay fetcher for probing and proxying captured media URLs.

Probes are best-effort header fetches used to mark references playable.
Proxy fetches stream an origin's body back to a client that cannot reach
the origin directly. Failures surface only to the caller of the specific
probe or proxy operation.
"""

import asyncio
import logging
from typing import AsyncIterator, Dict, Optional, Tuple

import aiohttp

from ..capture.classifier import is_media_content_type
from ..models.media import ProbeResult

logger = logging.getLogger(__name__)

# Generic binary types CDNs commonly serve media segments as
_PLAYABLE_GENERIC_TYPES = ("application/octet-stream", "binary/octet-stream", "application/dash+xml")


class RelayError(Exception):
    """Raised when a relay fetch cannot reach the origin or is refused."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


def looks_playable(status: Optional[int], content_type: Optional[str]) -> bool:
    """Decide playability from a probe's status and content-type."""
    if status is None or status >= 400:
        return False
    ct = (content_type or "").lower()
    return is_media_content_type(ct) or ct.startswith(_PLAYABLE_GENERIC_TYPES)



class RelayBody:
    """Chunked upstream body that releases its connection exactly once.

    Released when iteration ends or fails, or when aclose() is called,
    which also covers bodies that are never iterated.
    """

    def __init__(self, response: aiohttp.ClientResponse, chunk_size: int, url: str):
        self._response = response
        self._chunk_size = chunk_size
        self._url = url
        self.released = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.content.iter_chunked(self._chunk_size):
                yield chunk
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Relay stream for {self._url[:200]} interrupted: {e!r}")
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if not self.released:
            self.released = True
            self._response.release()

class RelayFetcher:
    """Server-side fetcher backed by a shared aiohttp session."""

    def __init__(
        self,
        timeout_seconds: float = 15.0,
        probe_timeout_seconds: float = 5.0,
        chunk_size: int = 65536,
        max_concurrent_probes: int = 8,
        user_agent: Optional[str] = None,
    ):
        """Initialize relay fetcher.

        Args:
            timeout_seconds: Total timeout for proxy fetches
            probe_timeout_seconds: Total timeout for probes
            chunk_size: Proxy streaming chunk size in bytes
            max_concurrent_probes: Probes allowed in flight at once
            user_agent: User-Agent sent upstream
        """
        self.timeout_seconds = timeout_seconds
        self.probe_timeout_seconds = probe_timeout_seconds
        self.chunk_size = chunk_size
        self.user_agent = user_agent
        self._probe_semaphore = asyncio.Semaphore(max_concurrent_probes)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"User-Agent": self.user_agent} if self.user_agent else None
            self._session = aiohttp.ClientSession(
                headers=headers,
                connector=aiohttp.TCPConnector(limit=20, limit_per_host=4),
            )
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def probe(self, url: str, referer: Optional[str] = None) -> ProbeResult:
        """Fetch response headers for a URL and judge playability.

        Tries HEAD first and falls back to a one-byte ranged GET when the
        origin refuses HEAD. Never raises.

        Args:
            url: Absolute http(s) URL
            referer: Page URL sent as Referer, for hotlink-protected CDNs

        Returns:
            ProbeResult; error is set when the origin could not be reached
        """
        headers = {"Referer": referer} if referer else {}
        timeout = aiohttp.ClientTimeout(total=self.probe_timeout_seconds)

        async with self._probe_semaphore:
            try:
                session = await self._get_session()
                async with session.head(url, headers=headers, timeout=timeout, allow_redirects=True) as resp:
                    status, resp_headers = resp.status, resp.headers
                if status in (403, 405, 501):
                    ranged = dict(headers, Range="bytes=0-0")
                    async with session.get(url, headers=ranged, timeout=timeout, allow_redirects=True) as resp:
                        status, resp_headers = resp.status, resp.headers
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                logger.debug(f"Probe failed for {url[:200]}: {e!r}")
                return ProbeResult(url=url, playable=False, error=str(e) or type(e).__name__)

        content_type = resp_headers.get("Content-Type")
        length = resp_headers.get("Content-Length")
        return ProbeResult(
            url=url,
            status_code=status,
            content_type=content_type,
            content_length=int(length) if length and length.isdigit() else None,
            playable=looks_playable(status, content_type),
        )

    async def open_stream(
        self,
        url: str,
        range_header: Optional[str] = None,
    ) -> Tuple[int, Dict[str, str], "RelayBody"]:
        """Open a proxied fetch of a URL.

        Args:
            url: Absolute http(s) URL
            range_header: Client Range header to forward

        Returns:
            (status, passthrough headers, body). Callers that may not iterate
            the body must call its aclose() to release the connection.

        Raises:
            RelayError: If the origin is unreachable or answers with an error
        """
        headers = {"Range": range_header} if range_header else {}
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            session = await self._get_session()
            resp = await session.get(url, headers=headers, timeout=timeout, allow_redirects=True)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise RelayError(f"Upstream unreachable: {e!r}")

        if resp.status >= 400:
            resp.release()
            raise RelayError(f"Upstream returned HTTP {resp.status}", status=resp.status)

        passthrough = {
            key: resp.headers[key]
            for key in ("Content-Type", "Content-Length", "Content-Range", "Accept-Ranges")
            if key in resp.headers
        }

        return resp.status, passthrough, RelayBody(resp, self.chunk_size, url)

    def __repr__(self) -> str:
        return f"RelayFetcher(timeout={self.timeout_seconds}s, open={self._session is not None and not self._session.closed})"
