import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from streambridge.api.streaming import sse_response
from streambridge.services.stream_registry import StreamRegistry

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/streams", tags=["streams"])


@router.get(
    "/{stream_id}",
    summary="Stream a registered bridge as server-sent events",
    description="Drains the stream once; the id is released after the final done event.",
)
async def stream_events(stream_id: str, request: Request) -> StreamingResponse:
    registry: StreamRegistry = request.app.state.stream_registry
    if stream_id not in registry:
        raise HTTPException(status_code=404, detail="Unknown stream id")
    logger.info("streaming registered bridge", extra={"stream_id": stream_id})
    return sse_response(registry.stream(stream_id), settings=request.app.state.settings)
