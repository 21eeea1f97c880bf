"""Unit tests for the relay fetcher."""

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from mediacap.relay.fetcher import RelayError, RelayFetcher, looks_playable


class FakeResponse:
    """Async context manager standing in for an aiohttp response."""

    def __init__(self, status, headers=None, chunks=()):
        self.status = status
        self.headers = headers or {}
        self.content = MagicMock()
        self.content.iter_chunked = self._iter_chunked
        self._chunks = list(chunks)
        self.released = False

    async def _iter_chunked(self, size):
        for chunk in self._chunks:
            yield chunk

    def release(self):
        self.released = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


@pytest.fixture
def fetcher():
    return RelayFetcher(timeout_seconds=1, probe_timeout_seconds=1)


def install_session(fetcher, head=None, get=None):
    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()
    if head is not None:
        session.head = MagicMock(side_effect=head) if isinstance(head, list) else MagicMock(return_value=head)
    if get is not None:
        session.get = MagicMock(side_effect=get) if isinstance(get, list) else MagicMock(return_value=get)
    fetcher._session = session
    return session


class TestLooksPlayable:
    def test_media_types(self):
        assert looks_playable(200, "video/mp4")
        assert looks_playable(206, "audio/mpeg")
        assert looks_playable(200, "application/octet-stream")
        assert looks_playable(200, "application/vnd.apple.mpegurl")

    def test_errors_and_documents(self):
        assert not looks_playable(404, "video/mp4")
        assert not looks_playable(None, "video/mp4")
        assert not looks_playable(200, "text/html")


class TestProbe:
    """Tests for RelayFetcher.probe."""

    @pytest.mark.asyncio
    async def test_head_probe(self, fetcher):
        session = install_session(fetcher, head=FakeResponse(200, {"Content-Type": "video/mp4", "Content-Length": "1024"}))

        result = await fetcher.probe("https://cdn.example.com/v.mp4", referer="https://example.com/")

        assert result.playable is True
        assert result.status_code == 200
        assert result.content_length == 1024
        assert session.head.call_args.kwargs["headers"] == {"Referer": "https://example.com/"}

    @pytest.mark.asyncio
    async def test_falls_back_to_ranged_get(self, fetcher):
        """Test origins refusing HEAD are probed with a one-byte GET."""
        session = install_session(
            fetcher,
            head=FakeResponse(405),
            get=FakeResponse(206, {"Content-Type": "audio/mpeg"}),
        )

        result = await fetcher.probe("https://cdn.example.com/a.mp3")

        assert result.status_code == 206
        assert result.playable is True
        assert session.get.call_args.kwargs["headers"]["Range"] == "bytes=0-0"

    @pytest.mark.asyncio
    async def test_unreachable_never_raises(self, fetcher):
        session = install_session(fetcher)
        session.head = MagicMock(side_effect=aiohttp.ClientConnectionError("refused"))

        result = await fetcher.probe("https://down.example.com/v.mp4")

        assert result.playable is False
        assert result.error


class TestOpenStream:
    """Tests for RelayFetcher.open_stream."""

    @pytest.mark.asyncio
    async def test_streams_body_and_headers(self, fetcher):
        upstream = FakeResponse(
            206,
            {"Content-Type": "video/mp4", "Content-Range": "bytes 0-3/10", "Set-Cookie": "a=b"},
            chunks=[b"ab", b"cd"],
        )
        session = install_session(fetcher)
        session.get = AsyncMock(return_value=upstream)

        status, headers, body = await fetcher.open_stream("https://cdn.example.com/v.mp4", range_header="bytes=0-3")

        assert status == 206
        assert headers == {"Content-Type": "video/mp4", "Content-Range": "bytes 0-3/10"}
        assert [chunk async for chunk in body] == [b"ab", b"cd"]
        assert upstream.released is True
        assert session.get.call_args.kwargs["headers"] == {"Range": "bytes=0-3"}

    @pytest.mark.asyncio
    async def test_body_released_without_iteration(self, fetcher):
        """Test closing an unread body releases the upstream connection once."""
        upstream = FakeResponse(200, {"Content-Type": "video/mp4"}, chunks=[b"ab"])
        upstream.release = MagicMock()
        session = install_session(fetcher)
        session.get = AsyncMock(return_value=upstream)

        _, _, body = await fetcher.open_stream("https://cdn.example.com/v.mp4")
        await body.aclose()
        await body.aclose()

        upstream.release.assert_called_once()

    @pytest.mark.asyncio
    async def test_upstream_error_status(self, fetcher):
        upstream = FakeResponse(403)
        session = install_session(fetcher)
        session.get = AsyncMock(return_value=upstream)

        with pytest.raises(RelayError) as exc_info:
            await fetcher.open_stream("https://cdn.example.com/private.mp4")

        assert exc_info.value.status == 403
        assert upstream.released is True

    @pytest.mark.asyncio
    async def test_unreachable(self, fetcher):
        session = install_session(fetcher)
        session.get = AsyncMock(side_effect=aiohttp.ClientConnectionError("refused"))

        with pytest.raises(RelayError) as exc_info:
            await fetcher.open_stream("https://down.example.com/v.mp4")
        assert exc_info.value.status is None

    @pytest.mark.asyncio
    async def test_close(self, fetcher):
        session = install_session(fetcher)
        await fetcher.close()

        session.close.assert_awaited_once()
        assert fetcher._session is None
