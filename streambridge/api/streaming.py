from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from fastapi.responses import StreamingResponse

from streambridge.core.settings import Settings, get_settings
from streambridge.services.bridge import AsyncBridge
from streambridge.services.sse import sse_frames

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


def sse_response(
    source: AsyncBridge[Any] | AsyncGenerator[Any, None],
    *,
    settings: Settings | None = None,
) -> StreamingResponse:
    """Serve a bridged stream as ``text/event-stream``."""

    settings = settings or get_settings()
    return StreamingResponse(
        sse_frames(source, error_message=settings.stream_error_message),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
