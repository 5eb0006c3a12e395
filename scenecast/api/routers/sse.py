"""Server-Sent Events helpers shared by the streaming routes."""

import json
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

from fastapi.responses import StreamingResponse

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def sse_data(payload: Dict[str, Any]) -> str:
    """Encode one ``data:`` event."""
    return f"data: {json.dumps(payload)}\n\n"


def sse_response(
    events: AsyncIterator[str],
    on_close: Optional[Callable[[], Awaitable[None]]] = None,
) -> StreamingResponse:
    """Wrap an event iterator in a StreamingResponse, running on_close when it ends."""

    async def body() -> AsyncIterator[str]:
        try:
            async for event in events:
                yield event
        finally:
            await events.aclose()
            if on_close is not None:
                await on_close()

    return StreamingResponse(body(), media_type="text/event-stream", headers=SSE_HEADERS)
