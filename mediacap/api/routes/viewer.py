"""Viewer page and compact session routes.

The viewer shows the target page in an iframe next to a live list of media
found for the session. The compact ``/start-session`` and ``/stream``
forms take query parameters instead of a JSON body or path segment.
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, StreamingResponse
from fastapi.templating import Jinja2Templates

from ...sessions.service import CaptureService
from ..dependencies import get_capture_service
from ..schemas import ErrorResponse, LegacySessionRef, StartSessionRequest
from .sessions import open_event_stream, viewer_path

logger = logging.getLogger(__name__)

# Initialize Jinja2 templates
templates_dir = Path(__file__).parent.parent / "templates"
templates = Jinja2Templates(directory=str(templates_dir))

router = APIRouter(
    tags=["Viewer"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request"},
        404: {"model": ErrorResponse, "description": "Unknown or Expired Session"},
    },
)


@router.get(
    "/start-session",
    response_model=LegacySessionRef,
    summary="Start a capture session (query form)"
)
async def start_session_query(
    http_request: Request,
    url: str = Query(..., min_length=1, description="Page to capture"),
    timeout: Optional[int] = Query(default=None, ge=1000, le=3600000, description="Inactivity timeout in ms"),
    service: CaptureService = Depends(get_capture_service)
) -> LegacySessionRef:
    """Start a capture session from query parameters."""
    try:
        body = StartSessionRequest(target_url=url, ttl_ms=timeout)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid url: {e}")

    session = service.start_session(body.target_url, ttl_ms=body.ttl_ms)
    logger.info(
        f"Started capture session {session.id}",
        extra={"request_id": getattr(http_request.state, "request_id", None), "session_id": session.id}
    )
    return LegacySessionRef(session=session.id, viewer=viewer_path(session.id, session.target_url))


@router.get(
    "/stream",
    summary="Follow a session event stream (query form)",
    response_class=StreamingResponse
)
async def stream_query(
    http_request: Request,
    session: str = Query(..., min_length=1, description="Session identifier"),
    service: CaptureService = Depends(get_capture_service)
) -> StreamingResponse:
    """Stream session events for a session given as a query parameter."""
    return open_event_stream(session, http_request, service)


@router.get("/viewer", response_class=HTMLResponse, summary="Session viewer page")
async def viewer(
    request: Request,
    session: Optional[str] = Query(default=None),
    target: Optional[str] = Query(default=None),
    service: CaptureService = Depends(get_capture_service)
):
    """Viewer page for a live session."""
    if not session or not target:
        raise HTTPException(status_code=400, detail="Both session and target are required")
    if not target.lower().startswith(("http://", "https://")):
        raise HTTPException(status_code=400, detail="target must be an http(s) URL")
    if service.registry.find(session) is None:
        raise HTTPException(status_code=400, detail=f"Unknown or expired session: {session}")

    context = {
        "title": "Media capture",
        "session_id": session,
        "target_url": target,
        "stream_path": f"/api/sessions/{session}/stream",
        "proxy_path": "/api/proxy",
    }
    return templates.TemplateResponse(request, "viewer.html", context)
