"""Shared test fixtures and configuration for media capture tests."""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from mediacap.config import MediaCapConfig
from mediacap.models.media import MediaCandidate
from mediacap.sessions.store import ResultStore
from mediacap.utils.url_canonicalizer import URLCanonicalizer


@pytest.fixture
def canonicalizer():
    """Canonicalizer with the default trusted domains and parameter lists."""
    return URLCanonicalizer()


@pytest.fixture
def store(canonicalizer):
    """Empty result store."""
    return ResultStore(canonicalizer, session_id="test-session")


@pytest.fixture
def make_candidate():
    """Factory for media candidates."""
    def _make(url, source="network-response", content_type=None):
        return MediaCandidate(url=url, source=source, content_type=content_type)
    return _make


@pytest.fixture
def quiet_config():
    """Configuration with probes disabled and no dwell, for fast tests."""
    return MediaCapConfig(
        environment="test",
        capture={"dwell_ms": 0, "inject_instrumentation": False},
        relay={"probe_enabled": False},
    )


@pytest.fixture
def mock_page():
    """Mock Playwright page."""
    page = AsyncMock()
    page.on = MagicMock()
    page.evaluate.return_value = []
    return page


@pytest.fixture
def mock_relay():
    """Mock relay fetcher."""
    relay = MagicMock()
    relay.probe = AsyncMock()
    relay.open_stream = AsyncMock()
    relay.close = AsyncMock()
    return relay
