"""Status transitions for GenerationJob rows.

Every status write goes through ``transition()``, which checks the edge
against ``ALLOWED_TRANSITIONS`` and then issues a conditional update keyed
on both the job id and the expected current status. A concurrent writer
that already moved the row makes the update match nothing; the caller gets
``False`` back and decides what that means.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from videogen.exceptions import InvalidTransitionError
from videogen.models import GenerationJob
from videogen.schemas.common import JobStatus

logger = logging.getLogger(__name__)


def check_transition(current: JobStatus | str, target: JobStatus | str) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is an allowed edge."""
    current, target = JobStatus(current), JobStatus(target)
    if not current.can_transition_to(target):
        raise InvalidTransitionError(current.value, target.value)


def transition(
    db: Session,
    job_id: str,
    current: JobStatus,
    target: JobStatus,
    **values: Any,
) -> bool:
    """Move a job from *current* to *target*, setting extra column *values*.

    Returns True if the row was updated, False if its status was no longer
    *current* when the update ran.
    """
    check_transition(current, target)

    values["status"] = target.value
    values["updated_at"] = datetime.now(timezone.utc)
    matched = (
        db.query(GenerationJob)
        .filter(GenerationJob.id == job_id, GenerationJob.status == current.value)
        .update(values, synchronize_session=False)
    )
    db.commit()

    if matched:
        logger.info("Job %s: %s -> %s", job_id[:8], current.value, target.value)
        return True
    logger.warning(
        "Job %s: %s -> %s skipped, status changed concurrently",
        job_id[:8], current.value, target.value,
    )
    return False
