from fastapi import APIRouter, Request

from streambridge.services.stream_registry import StreamRegistry

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz(request: Request) -> dict[str, str | int]:
    registry: StreamRegistry = request.app.state.stream_registry
    return {"status": "ok", "open_streams": len(registry)}
