"""WebSocket endpoint pushing a job's status changes to the client."""
from __future__ import annotations

import asyncio
import json
import logging

import redis
import redis.asyncio as aioredis
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from videogen.config import get_settings
from videogen.database import SessionLocal
from videogen.models import GenerationJob
from videogen.schemas.common import JobStatus
from videogen.services.status_broadcaster import channel_for, status_message

router = APIRouter()
logger = logging.getLogger(__name__)

_TERMINAL = {s.value for s in JobStatus if s.is_terminal}
_POLL_INTERVAL = 2.0


def _snapshot(job_id: str) -> dict | None:
    db = SessionLocal()
    try:
        job = db.query(GenerationJob).filter(GenerationJob.id == job_id).first()
        return status_message(job) if job else None
    finally:
        db.close()


@router.websocket("/ws/video-generation/{generation_id}")
async def generation_status_ws(websocket: WebSocket, generation_id: str):
    """Send the current snapshot, then every status change until a terminal one.

    The Redis channel ``generation:{id}`` is subscribed before the snapshot
    is read, so a change published in between is still delivered. When Redis
    is unreachable the job store is polled instead.
    """
    await websocket.accept()
    subscription = None
    try:
        try:
            subscription = await _subscribe(generation_id)
        except (redis.RedisError, OSError) as e:
            logger.warning("Redis unavailable for WebSocket (%s); polling job store", e)

        snapshot = _snapshot(generation_id)
        if snapshot is None:
            await websocket.send_text(json.dumps({"error": "Video generation not found"}))
            return
        await websocket.send_text(json.dumps(snapshot))
        if snapshot["status"] in _TERMINAL:
            return

        if subscription is not None:
            try:
                await _stream_from_redis(websocket, subscription[1])
                return
            except (redis.RedisError, OSError) as e:
                logger.warning("Redis stream for job %s broke (%s); polling job store", generation_id[:8], e)
        await _poll_db_fallback(websocket, generation_id, snapshot)
    except WebSocketDisconnect:
        logger.info("WebSocket disconnected for job %s", generation_id)
    finally:
        if subscription is not None:
            await _unsubscribe(generation_id, *subscription)
        try:
            await websocket.close()
        except RuntimeError:
            pass  # already closed by the client


async def _subscribe(generation_id: str):
    """Return ``(client, pubsub)`` listening on the job's channel."""
    r = aioredis.from_url(get_settings().REDIS_URL)
    pubsub = r.pubsub()
    try:
        await pubsub.subscribe(channel_for(generation_id))
    except (redis.RedisError, OSError):
        await r.aclose()
        raise
    return r, pubsub


async def _unsubscribe(generation_id: str, r, pubsub) -> None:
    try:
        await pubsub.unsubscribe(channel_for(generation_id))
        await pubsub.aclose()
        await r.aclose()
    except (redis.RedisError, OSError) as e:
        logger.debug("Error closing Redis subscription for job %s: %s", generation_id[:8], e)


async def _stream_from_redis(websocket: WebSocket, pubsub) -> None:
    while True:
        message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
        if message and message["type"] == "message":
            data = message["data"]
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            await websocket.send_text(data)
            if json.loads(data).get("status") in _TERMINAL:
                return
        else:
            # Heartbeat doubles as disconnect detection
            await websocket.send_text(json.dumps({"heartbeat": True}))
            await asyncio.sleep(1)


async def _poll_db_fallback(websocket: WebSocket, generation_id: str, last: dict) -> None:
    """Poll the job store and forward the row whenever it changes."""
    while True:
        await asyncio.sleep(_POLL_INTERVAL)
        snapshot = _snapshot(generation_id)
        if snapshot is None:
            await websocket.send_text(json.dumps({"error": "Video generation not found"}))
            return
        if snapshot != last:
            await websocket.send_text(json.dumps(snapshot))
            last = snapshot
        if snapshot["status"] in _TERMINAL:
            return
