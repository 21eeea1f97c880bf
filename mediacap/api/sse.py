"""Server-sent event framing for session streams."""

import json
from typing import Any, AsyncIterator, Dict

PING_FRAME = ": ping\n\n"


def format_event(event: Dict[str, Any]) -> str:
    """Frame one event; heartbeats become SSE comment lines."""
    if event.get("type") == "heartbeat":
        return PING_FRAME
    return f"data: {json.dumps(event, separators=(',', ':'))}\n\n"


async def sse_frames(events: AsyncIterator[Dict[str, Any]]) -> AsyncIterator[str]:
    """Frame an event iterator as a text/event-stream body."""
    async for event in events:
        yield format_event(event)


SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
