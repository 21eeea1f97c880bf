"""Capture session API routes.

This module implements FastAPI routes for starting capture sessions,
inspecting them, reading their ordered results, following their live
event stream and closing them.
"""

import logging
from typing import List
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from ...models.media import MediaReference
from ...sessions.registry import Session
from ...sessions.service import CaptureService
from ..dependencies import get_capture_service
from ..schemas import ErrorResponse, SessionDetail, SessionRef, StartSessionRequest
from ..sse import SSE_HEADERS, sse_frames

logger = logging.getLogger(__name__)

# Create router with tags for OpenAPI documentation
router = APIRouter(
    prefix="/sessions",
    tags=["Sessions"],
    responses={
        404: {"model": ErrorResponse, "description": "Unknown or Expired Session"},
        422: {"model": ErrorResponse, "description": "Validation Error"},
        500: {"model": ErrorResponse, "description": "Internal Server Error"},
    }
)


def viewer_path(session_id: str, target_url: str) -> str:
    """Relative viewer path for a session."""
    return "/viewer?" + urlencode({"session": session_id, "target": target_url})


def session_ref(session: Session) -> SessionRef:
    return SessionRef(
        session_id=session.id,
        target_url=session.target_url,
        viewer_path=viewer_path(session.id, session.target_url),
        stream_path=f"/api/sessions/{session.id}/stream",
        results_path=f"/api/sessions/{session.id}/results",
        created_at=session.created_at,
        ttl_ms=int(session.ttl_seconds * 1000),
    )


@router.post(
    "",
    response_model=SessionRef,
    status_code=201,
    summary="Start a capture session",
    description="Start rendering a page in the background and return the paths used to follow it"
)
async def start_session(
    body: StartSessionRequest,
    http_request: Request,
    service: CaptureService = Depends(get_capture_service)
) -> SessionRef:
    """Start a new capture session."""
    request_id = getattr(http_request.state, "request_id", None)

    session = service.start_session(body.target_url, ttl_ms=body.ttl_ms)
    logger.info(
        f"Started capture session {session.id}",
        extra={"request_id": request_id, "session_id": session.id, "target_url": body.target_url}
    )
    return session_ref(session)


@router.get(
    "/{session_id}",
    response_model=SessionDetail,
    summary="Get session status"
)
async def get_session(
    session_id: str,
    service: CaptureService = Depends(get_capture_service)
) -> SessionDetail:
    """Get the current state of a capture session."""
    session = service.get_session(session_id)
    return SessionDetail(**session.to_dict())


@router.get(
    "/{session_id}/results",
    response_model=List[MediaReference],
    summary="Get current results",
    description="Deduplicated media references in priority order (trusted domains first)"
)
async def get_results(
    session_id: str,
    service: CaptureService = Depends(get_capture_service)
) -> List[MediaReference]:
    """Get the ordered results of a capture session."""
    return service.results(session_id)


@router.get(
    "/{session_id}/stream",
    summary="Follow the session event stream",
    description=(
        "Server-sent events: every stored result is replayed first, then each new "
        "result is delivered once as it is found. Idle connections receive ping comments."
    ),
    response_class=StreamingResponse
)
async def stream_session(
    session_id: str,
    http_request: Request,
    service: CaptureService = Depends(get_capture_service)
) -> StreamingResponse:
    """Stream session events."""
    return open_event_stream(session_id, http_request, service)


def open_event_stream(session_id: str, http_request: Request, service: CaptureService) -> StreamingResponse:
    """Subscribe before responding so unknown sessions still get a 404.

    The subscriber is also detached after the response, which covers
    clients that disconnect before the first frame is sent.
    """
    subscriber = service.subscribe(session_id)
    logger.debug(
        f"Stream subscriber attached to session {session_id}",
        extra={"request_id": getattr(http_request.state, "request_id", None), "session_id": session_id}
    )
    return StreamingResponse(
        sse_frames(service.events(session_id, subscriber)),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
        background=BackgroundTask(service.unsubscribe, session_id, subscriber),
    )


@router.delete(
    "/{session_id}",
    status_code=204,
    summary="Close a session",
    description="Stop capturing, close the page and end every stream subscription"
)
async def close_session(
    session_id: str,
    http_request: Request,
    service: CaptureService = Depends(get_capture_service)
) -> Response:
    """Explicitly close a capture session."""
    await service.close_session(session_id)
    logger.info(
        f"Closed capture session {session_id}",
        extra={"request_id": getattr(http_request.state, "request_id", None), "session_id": session_id}
    )
    return Response(status_code=204)
