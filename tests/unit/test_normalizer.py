"""Unit tests for the capture normalizer."""

import pytest

from mediacap.capture.normalizer import CaptureNormalizer, extract_media_urls
from mediacap.models.media import ConsoleCapture, DomBatch, JsonBodyScan, NetworkResponse


class TestExtractMediaUrls:
    """Test cases for embedded URL extraction."""

    def test_json_escaped_slashes(self):
        """Test that \\/ escapes are undone before scanning."""
        body = '{"src":"https:\\/\\/cdn.example.com\\/a\\/clip.mp4?token=abc","n":1}'
        assert extract_media_urls(body) == ["https://cdn.example.com/a/clip.mp4?token=abc"]

    def test_unicode_escaped_ampersand(self):
        """Test that \\u0026 is turned back into &."""
        body = '{"u":"https://cdn.example.com/v.m3u8?a=1\\u0026b=2"}'
        assert extract_media_urls(body) == ["https://cdn.example.com/v.m3u8?a=1&b=2"]

    @pytest.mark.parametrize("slash", ["\\u002F", "\\u002f"])
    def test_unicode_escaped_slashes(self, slash):
        """Test that \\u002F slashes are undone in either hex case."""
        body = '{"src":"https:%s%scdn.example.com%sv.mp4?x=1\\u003Dy"}' % (slash, slash, slash)
        assert extract_media_urls(body) == ["https://cdn.example.com/v.mp4?x=1=y"]

    def test_distinct_in_order(self):
        """Test first-seen order without repeats."""
        body = (
            '["https://img.example.com/b.png", "https://img.example.com/a.jpg", '
            '"https://img.example.com/b.png"]'
        )
        assert extract_media_urls(body) == [
            "https://img.example.com/b.png",
            "https://img.example.com/a.jpg",
        ]

    def test_ignores_non_media(self):
        """Test that page and API URLs are not picked up."""
        body = '{"next":"https://api.example.com/v1/items?page=2","html":"https://example.com/mp4s/"}'
        assert extract_media_urls(body) == []

    def test_empty(self):
        assert extract_media_urls("") == []
        assert extract_media_urls(None) == []


class TestCaptureNormalizer:
    """Test cases for CaptureNormalizer."""

    @pytest.fixture
    def normalizer(self):
        return CaptureNormalizer(json_body_limit=1000)

    def test_network_media_content_type(self, normalizer):
        """Test media content-type responses become candidates."""
        candidates = normalizer.normalize(NetworkResponse(
            url="https://cdn.example.com/stream/seg1",
            content_type="video/mp2t",
            resource_type="media",
        ))
        assert len(candidates) == 1
        assert candidates[0].source == "network-response"
        assert candidates[0].content_type == "video/mp2t"

    def test_network_extension_match(self, normalizer):
        """Test extension matches without a media content-type."""
        candidates = normalizer.normalize(NetworkResponse(
            url="https://cdn.example.com/v.mp4?x=1",
            content_type="application/octet-stream",
        ))
        assert [c.source for c in candidates] == ["network-ext"]
        assert candidates[0].content_type is None

    def test_network_non_media_ignored(self, normalizer):
        """Test documents and scripts yield nothing."""
        assert normalizer.normalize(NetworkResponse(url="https://example.com/", content_type="text/html")) == []
        assert normalizer.normalize(NetworkResponse(url="https://example.com/app.js")) == []

    def test_xhr_json_body_scanned(self, normalizer):
        """Test XHR JSON bodies are scanned for embedded media URLs."""
        candidates = normalizer.normalize(NetworkResponse(
            url="https://api.example.com/feed",
            content_type="application/json; charset=utf-8",
            resource_type="xhr",
            body_text='{"items":[{"video":"https:\\/\\/cdn.example.com\\/v1.mp4"},{"img":"https://cdn.example.com/t.jpg"}]}',
        ))
        assert [c.url for c in candidates] == [
            "https://cdn.example.com/v1.mp4",
            "https://cdn.example.com/t.jpg",
        ]
        assert all(c.source == "xhr-json" for c in candidates)

    def test_json_body_limit(self):
        """Test that only the leading body slice is scanned."""
        normalizer = CaptureNormalizer(json_body_limit=50)
        body = '{"pad":"' + "x" * 100 + '","v":"https://cdn.example.com/late.mp4"}'
        candidates = normalizer.normalize(NetworkResponse(
            url="https://api.example.com/feed",
            content_type="application/json",
            resource_type="xhr",
            body_text=body,
        ))
        assert candidates == []

    def test_requestfinished_requires_extension(self, normalizer):
        """Test finished requests are only kept for media extensions."""
        kept = normalizer.normalize(NetworkResponse(url="https://cdn.example.com/a.webm", event="requestfinished"))
        dropped = normalizer.normalize(NetworkResponse(url="https://cdn.example.com/api", event="requestfinished"))

        assert [c.source for c in kept] == ["requestfinished"]
        assert dropped == []

    def test_console_capture(self, normalizer):
        """Test hook-reported URLs pass through with their note as source."""
        candidates = normalizer.normalize(ConsoleCapture(
            url="https://cdn.example.com/master.m3u8",
            content_type="application/vnd.apple.mpegurl",
            note="fetch",
        ))
        assert len(candidates) == 1
        assert candidates[0].source == "fetch"

        untagged = normalizer.normalize(ConsoleCapture(url="https://cdn.example.com/x.mp3"))
        assert untagged[0].source == "console"

    def test_dom_batch_deduplicated(self, normalizer):
        """Test DOM batches drop blanks and repeats."""
        candidates = normalizer.normalize(DomBatch(items=[
            "https://img.example.com/a.jpg",
            "",
            "  ",
            "https://img.example.com/a.jpg",
            "https://img.example.com/b.jpg",
        ]))
        assert [c.url for c in candidates] == [
            "https://img.example.com/a.jpg",
            "https://img.example.com/b.jpg",
        ]
        assert all(c.source == "dom" for c in candidates)

    def test_dom_final_source(self, normalizer):
        """Test the batch source tag is carried to candidates."""
        candidates = normalizer.normalize(DomBatch(items=["https://img.example.com/a.jpg"], source="dom-final"))
        assert candidates[0].source == "dom-final"

    def test_json_preview(self, normalizer):
        """Test JSON previews from the page hook."""
        candidates = normalizer.normalize(JsonBodyScan(
            preview_text='{"poster":"https:\\/\\/img.example.com\\/p.webp"}',
            url="https://api.example.com/meta",
        ))
        assert [(c.url, c.source) for c in candidates] == [("https://img.example.com/p.webp", "json-preview")]

    def test_malformed_observation_never_raises(self, normalizer):
        """Test that bad input produces no candidates."""
        assert normalizer.normalize(ConsoleCapture(url="   ")) == []
        assert normalizer.normalize(object()) == []
        assert normalizer.stats['discarded'] == 1
        assert normalizer.stats['observations'] == 2
