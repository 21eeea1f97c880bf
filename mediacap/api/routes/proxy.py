"""Media relay API route.

Relays a media URL's body and content-type for clients that cannot fetch
the origin directly (hotlink protection, CORS).
"""

import logging
from typing import Optional
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from ...sessions.service import CaptureService
from ..dependencies import get_capture_service
from ..schemas import ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/proxy",
    tags=["Relay"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request"},
        502: {"model": ErrorResponse, "description": "Upstream Failure"},
    }
)


@router.get(
    "",
    summary="Relay a media URL",
    description="Fetch a URL server-side and stream its body back with the original content-type",
    response_class=StreamingResponse
)
async def proxy_media(
    http_request: Request,
    url: str = Query(..., min_length=1, description="Absolute http(s) URL to relay"),
    service: CaptureService = Depends(get_capture_service)
) -> StreamingResponse:
    """Relay a media URL."""
    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Malformed URL: {e}")
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        raise HTTPException(status_code=400, detail="Only absolute http(s) URLs can be relayed")

    range_header: Optional[str] = http_request.headers.get("range")
    status, headers, body = await service.proxy(url, range_header=range_header)

    logger.debug(
        f"Relaying {url[:200]} ({status})",
        extra={"request_id": getattr(http_request.state, "request_id", None)}
    )
    media_type = headers.pop("Content-Type", None) or "application/octet-stream"
    return StreamingResponse(
        body,
        status_code=status,
        media_type=media_type,
        headers=headers,
        background=BackgroundTask(body.aclose),
    )
