"""API schemas for the media capture REST API.

This module exports all Pydantic models used for API request/response validation.
"""

# Request schemas
from .requests import StartSessionRequest

# Response schemas
from .responses import (
    SessionRef,
    LegacySessionRef,
    SessionDetail,
    ErrorResponse,
    HealthResponse,
)

__all__ = [
    # Request schemas
    "StartSessionRequest",

    # Response schemas
    "SessionRef",
    "LegacySessionRef",
    "SessionDetail",
    "ErrorResponse",
    "HealthResponse",
]
