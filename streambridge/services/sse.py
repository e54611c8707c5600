from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import aclosing
from typing import Any, Literal, TypedDict
import json
import logging

from pydantic import BaseModel

from streambridge.services.bridge import AsyncBridge

logger = logging.getLogger(__name__)

DEFAULT_STREAM_ERROR_MESSAGE = "Stream failed"


class ErrorEventData(TypedDict):
    message: str


class DoneEventData(TypedDict):
    reason: Literal["complete", "error"]


StreamEventType = Literal["message", "error", "done"]


class StreamEvent(TypedDict):
    type: StreamEventType
    data: Any


def _json_default(value: object) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_sse_event(event: StreamEvent) -> str:
    return f"event: {event['type']}\ndata: {json.dumps(event['data'], default=_json_default)}\n\n"


async def sse_frames(
    source: AsyncBridge[Any] | AsyncGenerator[Any, None],
    *,
    error_message: str = DEFAULT_STREAM_ERROR_MESSAGE,
) -> AsyncIterator[str]:
    """Drain a stream into SSE frames that always end with a ``done`` event.

    A failure of the source is logged and sent as a single generic ``error``
    event so the response body stays well-formed.
    """

    reason: Literal["complete", "error"] = "complete"
    try:
        async with aclosing(source):
            async for value in source:
                yield encode_sse_event({"type": "message", "data": value})
    except Exception:
        logger.exception("bridged stream failed", extra={"bridge_name": getattr(source, "name", None)})
        reason = "error"
        error: ErrorEventData = {"message": error_message}
        yield encode_sse_event({"type": "error", "data": error})
    done: DoneEventData = {"reason": reason}
    yield encode_sse_event({"type": "done", "data": done})
