"""Aggregate API v1 router — mounts all sub-routers."""
from fastapi import APIRouter
from videogen.api.v1 import video_generation, websocket

router = APIRouter(prefix="/api/v1")

router.include_router(video_generation.router, prefix="/video-generation", tags=["Video Generation"])
router.include_router(websocket.router, tags=["WebSocket"])
