"""API routes for the media capture service.

This module exports all route modules: session management under ``/api``,
the media relay and the viewer with its compact query forms.
"""

from .sessions import router as sessions_router
from .proxy import router as proxy_router
from .viewer import router as viewer_router

__all__ = [
    "sessions_router",
    "proxy_router",
    "viewer_router",
]
