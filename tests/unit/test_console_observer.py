"""Unit tests for console observer."""

import json
from unittest.mock import MagicMock

import pytest

from mediacap.capture.console_observer import ConsoleObserver
from mediacap.models.media import ConsoleCapture, DomBatch


def console_message(text):
    message = MagicMock()
    message.text = text
    return message


class TestConsoleObserver:
    """Tests for ConsoleObserver class."""

    @pytest.fixture
    def observations(self):
        return []

    @pytest.fixture
    def observer(self, mock_page, observations):
        return ConsoleObserver(mock_page, observations.append)

    def test_listener_registered(self, observer, mock_page):
        mock_page.on.assert_called_once_with("console", observer._on_console_message)

    def test_capture_messages_forwarded(self, observer, observations):
        """Test instrumentation messages become observations."""
        observer._on_console_message(console_message(
            "CAPTURE::" + json.dumps({"v": 1, "url": "https://cdn.example.com/a.mp3", "note": "xhr"})
        ))
        observer._on_console_message(console_message(
            "CAPTURE::" + json.dumps({"v": 1, "type": "dom", "items": ["https://img.example.com/a.jpg"]})
        ))

        assert isinstance(observations[0], ConsoleCapture)
        assert isinstance(observations[1], DomBatch)
        assert observer.stats['capture_messages'] == 2

    def test_other_messages_ignored(self, observer, observations):
        """Test page console noise is ignored."""
        observer._on_console_message(console_message("[HMR] connected"))
        observer._on_console_message(console_message(""))

        assert observations == []
        assert observer.stats['malformed_messages'] == 0

    def test_malformed_messages_counted(self, observer, observations):
        observer._on_console_message(console_message("CAPTURE::{broken"))

        assert observations == []
        assert observer.stats['malformed_messages'] == 1
