"""Unit tests for the page instrumentation message contract."""

import json

from mediacap.capture.instrumentation import (
    CAPTURE_PREFIX,
    CONTRACT_VERSION,
    build_instrumentation_script,
    parse_console_text,
    payload_to_observation,
)
from mediacap.models.media import ConsoleCapture, DomBatch, JsonBodyScan


def _message(payload):
    return CAPTURE_PREFIX + json.dumps(payload)


class TestInstrumentationScript:
    """Tests for the injected script."""

    def test_script_rendering(self):
        """Test placeholders are filled in."""
        script = build_instrumentation_script(preview_limit=1234)

        assert f'const PREFIX = "{CAPTURE_PREFIX}";' in script
        assert f"const VERSION = {CONTRACT_VERSION};" in script
        assert "const PREVIEW_LIMIT = 1234;" in script
        assert "%(" not in script

    def test_script_hooks(self):
        """Test the script patches fetch and XHR and watches the DOM."""
        script = build_instrumentation_script()

        assert "window.fetch" in script
        assert "XMLHttpRequest.prototype.open" in script
        assert "MutationObserver" in script


class TestPayloadParsing:
    """Tests for console message parsing."""

    def test_fetch_payload(self):
        observation = parse_console_text(_message(
            {"v": 1, "url": "https://cdn.example.com/a.m3u8", "ct": "application/vnd.apple.mpegurl", "note": "fetch"}
        ))
        assert isinstance(observation, ConsoleCapture)
        assert observation.url == "https://cdn.example.com/a.m3u8"
        assert observation.content_type == "application/vnd.apple.mpegurl"
        assert observation.note == "fetch"

    def test_dom_payload(self):
        observation = parse_console_text(_message(
            {"v": 1, "type": "dom", "items": ["https://img.example.com/a.jpg", 42, None]}
        ))
        assert isinstance(observation, DomBatch)
        assert observation.items == ["https://img.example.com/a.jpg"]
        assert observation.source == "dom"

    def test_json_preview_payload(self):
        observation = parse_console_text(_message(
            {"v": 1, "type": "json-preview", "url": "https://api.example.com/x", "preview": "{\"a\":1}"}
        ))
        assert isinstance(observation, JsonBodyScan)
        assert observation.preview_text == '{"a":1}'

    def test_unversioned_payload_accepted(self):
        """Test payloads without a version default to the current one."""
        observation = payload_to_observation({"url": "https://cdn.example.com/a.mp3"})
        assert isinstance(observation, ConsoleCapture)

    def test_other_version_rejected(self):
        assert payload_to_observation({"v": 99, "url": "https://cdn.example.com/a.mp3"}) is None

    def test_not_capture_messages(self):
        """Test ordinary console output is ignored."""
        assert parse_console_text("hello world") is None
        assert parse_console_text("") is None
        assert parse_console_text(None) is None

    def test_malformed_messages(self):
        """Test undecodable and shapeless payloads yield nothing."""
        assert parse_console_text(CAPTURE_PREFIX + "{not json") is None
        assert parse_console_text(CAPTURE_PREFIX + "[1, 2]") is None
        assert parse_console_text(_message({"v": 1, "type": "unknown"})) is None
