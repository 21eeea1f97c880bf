"""Configuration models for MediaCap.

All runtime knobs live in one pydantic model tree so the YAML loader,
the API and the CLI share a single validated source of truth.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


DEFAULT_TRUSTED_DOMAINS = [
    "youtube.com",
    "googlevideo",
    "youtu.be",
    "cdninstagram",
    "fbcdn.net",
    "facebook.com",
    "twitter.com",
    "twimg.com",
    "soundcloud.com",
    "sndcdn.com",
    "vimeo.com",
    "vimeocdn.com",
    "play.google.com",
    "tiktokcdn",
    "akamaized.net",
    "cloudfront.net",
    "amazonaws.com",
    "googleusercontent.com",
    "storage.googleapis.com",
    "blob.core.windows.net",
]

DEFAULT_TRACKING_PARAMS = [
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "utm_id",
    "_ga",
    "_gl",
]

DEFAULT_HEAVY_TRACKING_PARAMS = [
    "fbclid",
    "gclid",
    "dclid",
    "gbraid",
    "wbraid",
    "msclkid",
    "yclid",
    "twclid",
    "ttclid",
    "igshid",
    "mc_cid",
    "mc_eid",
    "ref",
    "ref_src",
    "ref_url",
    "referrer",
    "campaign",
    "campaign_id",
    "cmpid",
    "click_id",
    "clickid",
]

DEFAULT_BYTE_RANGE_PARAMS = ["bytestart", "byteend", "range"]

DEFAULT_AUTH_PARAMS = ["signature", "sig", "token", "policy", "key", "auth", "expire"]


class SessionSettings(BaseModel):
    """Session lifetime and broadcast settings."""

    ttl_ms: int = Field(default=90000, ge=1, description="Inactivity timeout")
    max_lifetime_ms: int = Field(
        default=600000,
        ge=1,
        description="Hard upper bound on a session regardless of activity"
    )
    heartbeat_seconds: float = Field(default=25.0, gt=0, description="Keep-alive interval")
    subscriber_queue_size: int = Field(
        default=1000,
        ge=1,
        description="Pending events per subscriber before it is dropped"
    )


class CaptureSettings(BaseModel):
    """Per-session capture worker settings."""

    navigation_timeout_ms: int = Field(default=60000, ge=0)
    wait_until: str = Field(default="networkidle")
    dwell_ms: int = Field(default=1800, ge=0, description="Wait for late dynamic loads")
    inject_instrumentation: bool = Field(default=True)
    json_body_limit: int = Field(
        default=200000,
        ge=0,
        description="Maximum bytes of an XHR JSON body scanned for URLs"
    )
    json_preview_limit: int = Field(
        default=8000,
        ge=0,
        description="Characters of JSON body the page hook forwards"
    )

    @field_validator("wait_until")
    @classmethod
    def validate_wait_until(cls, v):
        valid = {"load", "domcontentloaded", "networkidle", "commit"}
        if v not in valid:
            raise ValueError(f"wait_until must be one of: {valid}")
        return v


class BrowserSettings(BaseModel):
    """Rendering engine settings."""

    engine: str = Field(default="chromium")
    headless: bool = Field(default=True)
    user_agent: Optional[str] = Field(default=None)
    ignore_https_errors: bool = Field(default=True)
    viewport_width: int = Field(default=1366, ge=1)
    viewport_height: int = Field(default=768, ge=1)
    extra_args: List[str] = Field(default_factory=list)

    @field_validator("engine")
    @classmethod
    def validate_engine(cls, v):
        valid = {"chromium", "firefox", "webkit"}
        if v not in valid:
            raise ValueError(f"Browser engine must be one of: {valid}")
        return v


class RelaySettings(BaseModel):
    """Relay fetcher settings."""

    timeout_seconds: float = Field(default=15.0, gt=0)
    probe_enabled: bool = Field(default=True)
    probe_timeout_seconds: float = Field(default=5.0, gt=0)
    chunk_size: int = Field(default=65536, ge=1024)
    max_concurrent_probes: int = Field(default=8, ge=1)
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
        )
    )


class URLSettings(BaseModel):
    """Parameter and domain lists used by the URL canonicalizer."""

    trusted_domains: List[str] = Field(default_factory=lambda: list(DEFAULT_TRUSTED_DOMAINS))
    tracking_params: List[str] = Field(default_factory=lambda: list(DEFAULT_TRACKING_PARAMS))
    heavy_tracking_params: List[str] = Field(
        default_factory=lambda: list(DEFAULT_HEAVY_TRACKING_PARAMS)
    )
    byte_range_params: List[str] = Field(default_factory=lambda: list(DEFAULT_BYTE_RANGE_PARAMS))
    auth_params: List[str] = Field(default_factory=lambda: list(DEFAULT_AUTH_PARAMS))


class MediaCapConfig(BaseModel):
    """Root configuration."""

    environment: str = Field(default="production", description="Environment name")
    sessions: SessionSettings = Field(default_factory=SessionSettings)
    capture: CaptureSettings = Field(default_factory=CaptureSettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    relay: RelaySettings = Field(default_factory=RelaySettings)
    urls: URLSettings = Field(default_factory=URLSettings)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        valid_environments = {"production", "staging", "development", "test"}
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v

    def summary(self) -> Dict[str, Any]:
        """Short description used in startup logs."""
        return {
            "environment": self.environment,
            "ttl_ms": self.sessions.ttl_ms,
            "engine": self.browser.engine,
            "headless": self.browser.headless,
            "probe_enabled": self.relay.probe_enabled,
            "trusted_domains": len(self.urls.trusted_domains),
        }
