"""API request schemas for the media capture REST API.

This module defines Pydantic models for request payloads.
"""

from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, field_validator


class StartSessionRequest(BaseModel):
    """Request schema for starting a capture session.

    The target page is rendered in the background; the response returns
    immediately with the paths used to follow the session.
    """

    target_url: str = Field(
        ...,
        min_length=1,
        max_length=4096,
        description="Absolute http(s) URL of the page to capture",
        examples=["https://www.example.com/watch/123"]
    )

    ttl_ms: Optional[int] = Field(
        default=None,
        ge=1000,
        le=3600000,
        description="Inactivity timeout in milliseconds (defaults to configuration)"
    )

    @field_validator('target_url')
    @classmethod
    def validate_target_url(cls, v: str) -> str:
        """Require an absolute http(s) URL."""
        v = v.strip()
        parts = urlsplit(v)
        if parts.scheme.lower() not in ('http', 'https') or not parts.netloc:
            raise ValueError("target_url must be an absolute http(s) URL")
        return v

    class Config:
        """Pydantic configuration with examples for OpenAPI documentation."""
        json_schema_extra = {
            "example": {
                "target_url": "https://www.example.com/watch/123",
                "ttl_ms": 90000
            }
        }
