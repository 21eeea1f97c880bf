"""API response schemas for the media capture REST API.

This module defines Pydantic models for session references and details,
health and error responses.
"""

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class SessionRef(BaseModel):
    """Reference to a newly started capture session."""

    session_id: str = Field(..., description="Unique session identifier")

    target_url: str = Field(..., description="Page being captured")

    viewer_path: str = Field(..., description="Relative path of the HTML viewer")

    stream_path: str = Field(..., description="Relative path of the event stream")

    results_path: str = Field(..., description="Relative path of the current results")

    created_at: datetime = Field(..., description="When the session was created")

    ttl_ms: int = Field(..., ge=1, description="Inactivity timeout in milliseconds")

    class Config:
        """Pydantic configuration with examples for OpenAPI documentation."""
        json_schema_extra = {
            "example": {
                "session_id": "3f2b9c1e-8d4a-4f57-9a43-0c6f1f5e2b11",
                "target_url": "https://www.example.com/watch/123",
                "viewer_path": "/viewer?session=3f2b9c1e-8d4a-4f57-9a43-0c6f1f5e2b11&target=https%3A%2F%2Fwww.example.com%2Fwatch%2F123",
                "stream_path": "/api/sessions/3f2b9c1e-8d4a-4f57-9a43-0c6f1f5e2b11/stream",
                "results_path": "/api/sessions/3f2b9c1e-8d4a-4f57-9a43-0c6f1f5e2b11/results",
                "created_at": "2024-01-15T10:30:00Z",
                "ttl_ms": 90000
            }
        }


class LegacySessionRef(BaseModel):
    """Session reference in the compact start-session form."""

    session: str = Field(..., description="Unique session identifier")

    viewer: str = Field(..., description="Relative path of the HTML viewer")


class SessionDetail(BaseModel):
    """Current state of a capture session."""

    session_id: str = Field(..., description="Unique session identifier")

    target_url: str = Field(..., description="Page being captured")

    created_at: datetime = Field(..., description="When the session was created")

    ttl_ms: int = Field(..., description="Inactivity timeout in milliseconds")

    expires_in_ms: int = Field(..., ge=0, description="Time left before expiry without activity")

    result_count: int = Field(..., ge=0, description="Number of deduplicated results")

    counts_by_kind: Dict[str, int] = Field(
        default_factory=dict,
        description="Result counts keyed by media kind"
    )

    subscriber_count: int = Field(..., ge=0, description="Live stream subscribers")

    capturing: bool = Field(..., description="Whether the capture worker is still running")


class ErrorResponse(BaseModel):
    """Standard error response schema.

    This schema provides consistent error information across
    all API endpoints.
    """

    error: str = Field(
        ...,
        description="Error code or type"
    )

    message: str = Field(
        ...,
        description="Human-readable error message"
    )

    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Additional error details for debugging"
    )

    request_id: Optional[str] = Field(
        default=None,
        description="Unique request identifier for tracking"
    )

    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the error occurred"
    )

    class Config:
        """Pydantic configuration with examples for OpenAPI documentation."""
        json_schema_extra = {
            "example": {
                "error": "session_not_found",
                "message": "Unknown or expired session: 3f2b9c1e-8d4a-4f57-9a43-0c6f1f5e2b11",
                "request_id": "7c0d2e1a-5b7f-4e0e-9d7e-2a1f7b7e9c55",
                "timestamp": "2024-01-15T10:35:00Z"
            }
        }


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: Literal['healthy', 'degraded', 'unhealthy'] = Field(
        ...,
        description="Overall system health status"
    )

    version: str = Field(
        ...,
        description="API version"
    )

    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="Health check timestamp"
    )

    active_sessions: int = Field(
        ...,
        ge=0,
        description="Number of live capture sessions"
    )

    browser_running: bool = Field(
        ...,
        description="Whether the shared browser is launched (it starts on first use)"
    )

    uptime_seconds: float = Field(
        ...,
        ge=0,
        description="Application uptime in seconds"
    )
