"""Startup cleanup shared between the FastAPI lifespan and Celery worker_init.

A job only sits in ``pending`` for the duration of one provider call. Rows
still pending long after that were left behind by a process that died
mid-submission; the provider never acknowledged them, so they are failed
rather than left looking active forever.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

ORPHAN_MESSAGE = (
    "Submission was interrupted before the provider accepted it. "
    "Please start a new generation."
)


def cleanup_orphaned_jobs(db: Session | None = None, stale_after_seconds: int | None = None) -> int:
    """Mark pending jobs older than the stale threshold as failed.

    Returns the number of orphaned jobs cleaned up.
    """
    from videogen.config import get_settings
    from videogen.database import SessionLocal
    from videogen.models import GenerationJob
    from videogen.schemas.common import JobStatus
    from videogen.services import job_state

    if stale_after_seconds is None:
        stale_after_seconds = get_settings().PENDING_STALE_SECONDS
    cutoff = datetime.now(timezone.utc) - timedelta(seconds=stale_after_seconds)

    owns_session = db is None
    db = db or SessionLocal()
    count = 0
    try:
        orphan_ids = [
            job_id for (job_id,) in (
                db.query(GenerationJob.id)
                .filter(
                    GenerationJob.status == JobStatus.PENDING.value,
                    GenerationJob.created_at < cutoff,
                )
                .all()
            )
        ]
        for job_id in orphan_ids:
            logger.warning("Marking orphaned pending job %s as failed on startup", job_id[:8])
            if job_state.transition(
                db, job_id, JobStatus.PENDING, JobStatus.FAILED, error_message=ORPHAN_MESSAGE,
            ):
                count += 1
        if count:
            logger.info("Cleaned up %d orphaned job(s)", count)
    except SQLAlchemyError as exc:
        logger.warning("Could not clean up orphaned jobs: %s", exc)
    finally:
        if owns_session:
            db.close()
    return count
