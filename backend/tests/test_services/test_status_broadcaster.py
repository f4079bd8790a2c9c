"""Tests for Redis status broadcasting."""
from videogen.models import GenerationJob
from videogen.services.status_broadcaster import StatusBroadcaster, channel_for, status_message


def test_channel_name():
    assert channel_for("abc") == "generation:abc"


def test_status_message_fields():
    job = GenerationJob(id="abc", prompt="p", status="completed", video_url="https://x/v.mp4")
    assert status_message(job) == {
        "generation_id": "abc",
        "status": "completed",
        "video_url": "https://x/v.mp4",
        "thumbnail_url": None,
        "error_message": None,
    }


def test_unreachable_redis_is_ignored():
    broadcaster = StatusBroadcaster("redis://127.0.0.1:1/0")
    job = GenerationJob(id="abc", prompt="p", status="processing")
    broadcaster.publish(job)
