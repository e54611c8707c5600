from fastapi import APIRouter

from streambridge.api.routers.streams import router as streams_router

api_router = APIRouter()
api_router.include_router(streams_router)
