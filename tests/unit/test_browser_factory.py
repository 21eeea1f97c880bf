"""Unit tests for browser factory."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from mediacap.capture.browser_factory import BrowserConfig, BrowserEngineType, BrowserFactory
from mediacap.config.settings import BrowserSettings


class TestBrowserConfig:
    """Tests for BrowserConfig class."""

    def test_default_config(self):
        """Test default configuration values."""
        config = BrowserConfig()

        assert config.engine == BrowserEngineType.CHROMIUM
        assert config.headless is True
        assert config.viewport == {'width': 1366, 'height': 768}
        assert config.extra_args == []

    def test_from_settings(self):
        settings = BrowserSettings(
            engine="firefox",
            headless=False,
            viewport_width=1280,
            viewport_height=720,
            user_agent="Custom UA",
            extra_args=["--mute-audio"],
        )

        config = BrowserConfig.from_settings(settings)

        assert config.engine == BrowserEngineType.FIREFOX
        assert config.headless is False
        assert config.viewport == {'width': 1280, 'height': 720}
        assert config.user_agent == "Custom UA"

    def test_browser_options_conversion(self):
        """Test conversion to browser launch options."""
        config = BrowserConfig(headless=False, extra_args=["--mute-audio"], slow_mo=500)

        options = config.to_browser_options()

        assert options == {'headless': False, 'args': ["--mute-audio"], 'slow_mo': 500}

    def test_context_options_conversion(self):
        """Test conversion to page context options."""
        config = BrowserConfig(user_agent="Custom UA", ignore_https_errors=False)

        options = config.to_context_options()

        assert options == {'viewport': {'width': 1366, 'height': 768}, 'user_agent': "Custom UA"}


class TestBrowserFactory:
    """Tests for BrowserFactory class."""

    @pytest.fixture
    def mock_playwright(self):
        """Mock Playwright instance."""
        with patch('mediacap.capture.browser_factory.async_playwright') as mock_pw:
            playwright_mock = AsyncMock()
            async_pw_instance = AsyncMock()
            async_pw_instance.start = AsyncMock(return_value=playwright_mock)
            mock_pw.return_value = async_pw_instance

            browser_mock = AsyncMock()
            browser_mock.is_connected = MagicMock(return_value=True)
            playwright_mock.chromium.launch.return_value = browser_mock
            playwright_mock.firefox.launch.return_value = browser_mock
            playwright_mock.webkit.launch.return_value = browser_mock

            yield {
                'async_playwright': mock_pw,
                'playwright': playwright_mock,
                'browser': browser_mock,
            }

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, mock_playwright):
        factory = BrowserFactory()

        await factory.start()
        await factory.start()

        assert factory.is_running is True
        mock_playwright['playwright'].chromium.launch.assert_called_once_with(headless=True)

    @pytest.mark.asyncio
    async def test_engine_selection(self, mock_playwright):
        factory = BrowserFactory(BrowserConfig(engine=BrowserEngineType.WEBKIT))

        await factory.start()

        mock_playwright['playwright'].webkit.launch.assert_called_once()
        mock_playwright['playwright'].chromium.launch.assert_not_called()

    @pytest.mark.asyncio
    async def test_new_page_starts_browser(self, mock_playwright):
        """Test pages are opened lazily with the context options."""
        factory = BrowserFactory(BrowserConfig(user_agent="Custom UA"))

        page = await factory.new_page()

        assert page is mock_playwright['browser'].new_page.return_value
        mock_playwright['browser'].new_page.assert_called_once_with(
            viewport={'width': 1366, 'height': 768},
            user_agent="Custom UA",
            ignore_https_errors=True,
        )
        assert factory.page_count == 1

    @pytest.mark.asyncio
    async def test_stop(self, mock_playwright):
        factory = BrowserFactory()
        await factory.start()

        await factory.stop()

        mock_playwright['browser'].close.assert_called_once()
        mock_playwright['playwright'].stop.assert_called_once()
        assert factory.is_running is False

    @pytest.mark.asyncio
    async def test_failed_launch_cleans_up(self, mock_playwright):
        mock_playwright['playwright'].chromium.launch.side_effect = RuntimeError("Executable doesn't exist")
        factory = BrowserFactory()

        with pytest.raises(RuntimeError):
            await factory.start()

        assert factory.browser is None
        mock_playwright['playwright'].stop.assert_called_once()
