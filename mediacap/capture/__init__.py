"""Browser capture: page rendering, observation and normalization."""

from .browser_factory import BrowserFactory, BrowserConfig, BrowserEngineType
from .classifier import classify, is_manifest, is_media_content_type
from .console_observer import ConsoleObserver
from .instrumentation import (
    CAPTURE_PREFIX,
    CONTRACT_VERSION,
    build_instrumentation_script,
    parse_console_text,
)
from .network_observer import NetworkObserver
from .normalizer import CaptureNormalizer, extract_media_urls
from .page_session import CaptureWorker, PageSessionConfig, WaitStrategy

__all__ = [
    "BrowserFactory",
    "BrowserConfig",
    "BrowserEngineType",
    "classify",
    "is_manifest",
    "is_media_content_type",
    "ConsoleObserver",
    "CAPTURE_PREFIX",
    "CONTRACT_VERSION",
    "build_instrumentation_script",
    "parse_console_text",
    "NetworkObserver",
    "CaptureNormalizer",
    "extract_media_urls",
    "CaptureWorker",
    "PageSessionConfig",
    "WaitStrategy",
]
