"""Redis pub/sub broadcast of job status changes.

Each applied transition is published on ``generation:{job_id}`` so the
WebSocket endpoint can push it to connected clients. Publishing is strictly
best-effort: the job store is the source of truth and a missing Redis never
affects a request.
"""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any

import redis

from videogen.config import get_settings
from videogen.models import GenerationJob

logger = logging.getLogger(__name__)


def channel_for(job_id: str) -> str:
    return f"generation:{job_id}"


def status_message(job: GenerationJob) -> dict[str, Any]:
    """The payload clients receive for one status change."""
    return {
        "generation_id": job.id,
        "status": job.status,
        "video_url": job.video_url,
        "thumbnail_url": job.thumbnail_url,
        "error_message": job.error_message,
    }


class StatusBroadcaster:
    """Publishes job snapshots to Redis; lazy and tolerant of failure."""

    def __init__(self, redis_url: str):
        self._redis_url = redis_url
        self._redis: redis.Redis | None = None

    @property
    def redis_client(self) -> redis.Redis | None:
        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    self._redis_url,
                    socket_connect_timeout=1,
                    socket_timeout=1,
                )
            except (redis.RedisError, ValueError) as e:
                logger.warning("Could not create Redis client for status updates: %s", e)
        return self._redis

    def publish(self, job: GenerationJob) -> None:
        rc = self.redis_client
        if rc is None:
            return
        try:
            rc.publish(channel_for(job.id), json.dumps(status_message(job)))
        except redis.RedisError as e:
            logger.debug("Status broadcast for job %s dropped: %s", job.id[:8], e)


@lru_cache
def get_broadcaster() -> StatusBroadcaster | None:
    """Shared broadcaster, or None when broadcasting is disabled."""
    settings = get_settings()
    if not settings.BROADCAST_ENABLED:
        return None
    return StatusBroadcaster(settings.REDIS_URL)
