"""Video generation job orchestration.

``GenerationService`` owns the job lifecycle against the store and the
Prediction Provider:

  submit     pending -> processing | failed
  reconcile  processing -> completed | failed | cancelled (or no change)
  cancel     processing -> cancelled
  delete     removes the row, any status

The provider is any object exposing the async methods of
``ReplicateClient`` (create_prediction, get_prediction, get_video_url,
cancel_prediction); tests pass a fake.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from videogen.config import Settings, get_settings
from videogen.exceptions import ConflictError, NotFoundError, ProviderError
from videogen.models import GenerationJob
from videogen.schemas.common import JobStatus
from videogen.schemas.generation import GenerationRequest
from videogen.services import job_state
from videogen.services.prediction_provider import build_prediction_input
from videogen.services.status_broadcaster import StatusBroadcaster

logger = logging.getLogger(__name__)

GENERIC_PROVIDER_FAILURE = "Generation failed"


class GenerationService:

    def __init__(
        self,
        db: Session,
        provider: Any,
        broadcaster: StatusBroadcaster | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.provider = provider
        self.broadcaster = broadcaster
        self.settings = settings or get_settings()

    # ── Lookup ─────────────────────────────────────────────────────────

    def get_job(self, job_id: str, user_id: str | None = None) -> GenerationJob:
        query = self.db.query(GenerationJob).filter(GenerationJob.id == job_id)
        if user_id:
            query = query.filter(GenerationJob.user_id == user_id)
        job = query.first()
        if not job:
            raise NotFoundError()
        return job

    def list_jobs(
        self,
        page: int = 1,
        limit: int = 10,
        user_id: str | None = None,
    ) -> tuple[list[GenerationJob], int]:
        """Return one page of jobs (newest first) and the total count."""
        query = self.db.query(GenerationJob)
        if user_id:
            query = query.filter(GenerationJob.user_id == user_id)
        total = query.count()
        jobs = (
            query.order_by(GenerationJob.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return jobs, total

    # ── Submission ─────────────────────────────────────────────────────

    async def submit(self, request: GenerationRequest, user_id: str | None = None) -> GenerationJob:
        """Create the job row and hand the request to the provider.

        On provider rejection the row is kept as ``failed`` and the
        ProviderError is re-raised for the caller to report.
        """
        s = self.settings
        job = GenerationJob(
            user_id=user_id,
            prompt=request.prompt,
            image_url=request.image,
            model_type=s.MODEL_TYPE,
            duration=request.duration.value if request.duration else s.DEFAULT_DURATION,
            aspect_ratio=request.aspect_ratio.value if request.aspect_ratio else s.DEFAULT_ASPECT_RATIO,
            resolution=request.resolution.value if request.resolution else s.DEFAULT_RESOLUTION,
            status=JobStatus.PENDING.value,
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        logger.info("Job %s created for prompt: %r", job.id[:8], job.prompt[:80])

        input_data = build_prediction_input(
            prompt=job.prompt,
            image=job.image_url,
            duration=job.duration,
            aspect_ratio=job.aspect_ratio,
            resolution=job.resolution,
            settings=s,
        )
        job_id = job.id
        try:
            prediction = await self.provider.create_prediction(input_data)
        except ProviderError as e:
            self._record_submission_failure(job_id, e.message)
            e.generation_id = job_id
            raise
        except Exception as e:
            logger.exception("Unexpected provider error for job %s", job_id[:8])
            message = str(e) or "Failed to start video generation"
            self._record_submission_failure(job_id, message)
            raise ProviderError(message, generation_id=job_id) from e

        if not self._transition(job_id, JobStatus.PENDING, JobStatus.PROCESSING, external_id=prediction.id):
            # Nothing else will ever know the prediction id
            await self._cancel_upstream(job_id, prediction.id)
        return self._reload(job_id)

    def _record_submission_failure(self, job_id: str, message: str) -> None:
        message = message or "Failed to start video generation"
        logger.error("Job %s rejected by provider: %s", job_id[:8], message)
        self._transition(job_id, JobStatus.PENDING, JobStatus.FAILED, error_message=message)

    # ── Reconciliation ─────────────────────────────────────────────────

    async def get_status(self, job_id: str, user_id: str | None = None) -> GenerationJob:
        job = self.get_job(job_id, user_id)
        return await self.reconcile(job)

    async def reconcile(self, job: GenerationJob) -> GenerationJob:
        """Refresh an in-flight job from the provider.

        Jobs that are not ``processing`` or have no external id are returned
        untouched without contacting the provider. Provider errors leave the
        row as it was; the next poll tries again. Raises NotFoundError if the
        row is deleted while the provider is being asked.
        """
        if job.status != JobStatus.PROCESSING.value or not job.external_id:
            return job
        job_id, external_id = job.id, job.external_id

        try:
            prediction = await self.provider.get_prediction(external_id)
            video_url = None
            if prediction.succeeded:
                video_url = prediction.video_url or await self.provider.get_video_url(external_id)
        except ProviderError as e:
            logger.warning("Could not reconcile job %s: %s", job_id[:8], e.message)
            return self._reload(job_id)

        if prediction.succeeded:
            self._transition(
                job_id, JobStatus.PROCESSING, JobStatus.COMPLETED,
                video_url=video_url, output_data=prediction.raw,
            )
        elif prediction.failed:
            self._transition(
                job_id, JobStatus.PROCESSING, JobStatus.FAILED,
                error_message=prediction.error or GENERIC_PROVIDER_FAILURE,
            )
        elif prediction.canceled:
            self._transition(job_id, JobStatus.PROCESSING, JobStatus.CANCELLED)
        return self._reload(job_id)

    async def reconcile_in_flight(self, limit: int) -> dict[str, int]:
        """Reconcile up to *limit* processing jobs, least recently updated first.

        Jobs deleted mid-sweep are skipped and not counted.
        """
        job_ids = [
            job_id for (job_id,) in (
                self.db.query(GenerationJob.id)
                .filter(
                    GenerationJob.status == JobStatus.PROCESSING.value,
                    GenerationJob.external_id.isnot(None),
                )
                .order_by(GenerationJob.updated_at.asc())
                .limit(limit)
                .all()
            )
        ]
        summary = {"checked": 0, "completed": 0, "failed": 0, "cancelled": 0, "unchanged": 0}
        for job_id in job_ids:
            try:
                job = await self.reconcile(self._reload(job_id))
            except NotFoundError:
                logger.info("Job %s deleted during reconciliation, skipping", job_id[:8])
                continue
            summary["checked"] += 1
            if job.status == JobStatus.PROCESSING.value:
                summary["unchanged"] += 1
            else:
                summary[job.status] += 1
        return summary

    # ── Cancellation / deletion ────────────────────────────────────────

    async def cancel(self, job_id: str, user_id: str | None = None) -> GenerationJob:
        job = self.get_job(job_id, user_id)
        if job.status != JobStatus.PROCESSING.value:
            raise ConflictError("Can only cancel processing generations")

        if job.external_id:
            await self._cancel_upstream(job_id, job.external_id)

        if not self._transition(job_id, JobStatus.PROCESSING, JobStatus.CANCELLED):
            job = self._reload(job_id)
            raise ConflictError(f"Generation is already {job.status}")
        return self._reload(job_id)

    def delete(self, job_id: str, user_id: str | None = None) -> str:
        job = self.get_job(job_id, user_id)
        self.db.delete(job)
        self.db.commit()
        logger.info("Job %s deleted", job_id[:8])
        return job_id

    # ── Internal helpers ───────────────────────────────────────────────

    async def _cancel_upstream(self, job_id: str, prediction_id: str) -> None:
        try:
            await self.provider.cancel_prediction(prediction_id)
        except ProviderError as e:
            logger.warning("Provider cancel failed for job %s: %s", job_id[:8], e.message)

    def _reload(self, job_id: str) -> GenerationJob:
        """Re-read a job after a write; raises NotFoundError if it was deleted."""
        job = (
            self.db.query(GenerationJob)
            .filter(GenerationJob.id == job_id)
            .populate_existing()
            .first()
        )
        if not job:
            raise NotFoundError()
        return job

    def _transition(self, job_id: str, current: JobStatus, target: JobStatus, **values: Any) -> bool:
        applied = job_state.transition(self.db, job_id, current, target, **values)
        if applied and self.broadcaster is not None:
            job = self.db.query(GenerationJob).filter(GenerationJob.id == job_id).populate_existing().first()
            if job:
                self.broadcaster.publish(job)
        return applied
