"""Capture sessions: result store, broadcast hub, registry and service layer."""

from .store import ResultStore
from .hub import BroadcastHub, Subscriber, SubscriberState, HEARTBEAT
from .registry import Session, SessionRegistry, SessionNotFoundError
from .service import CaptureService, capture_with_browser

__all__ = [
    "ResultStore",
    "BroadcastHub",
    "Subscriber",
    "SubscriberState",
    "HEARTBEAT",
    "Session",
    "SessionRegistry",
    "SessionNotFoundError",
    "CaptureService",
    "capture_with_browser",
]
