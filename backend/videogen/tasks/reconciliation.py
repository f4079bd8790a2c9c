"""Celery task that reconciles processing jobs in the background.

Exposes ``reconcile_processing_jobs``, scheduled by Celery beat. The
reconciliation logic is the async ``GenerationService.reconcile``, so each
run spins up a short-lived event loop to bridge sync Celery with it.
"""
from __future__ import annotations

import asyncio
import logging

from videogen.celery_app import celery_app
from videogen.config import get_settings
from videogen.database import SessionLocal
from videogen.services.generation_service import GenerationService
from videogen.services.http_client_manager import close_all_clients
from videogen.services.prediction_provider import ReplicateClient
from videogen.services.status_broadcaster import get_broadcaster

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="reconciliation.reconcile_processing_jobs")
def reconcile_processing_jobs(self, limit: int | None = None):
    """Refresh the least recently updated processing jobs from the provider."""
    settings = get_settings()
    db = SessionLocal()
    try:
        service = GenerationService(
            db,
            ReplicateClient.from_settings(settings),
            get_broadcaster(),
            settings,
        )
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            summary = loop.run_until_complete(
                service.reconcile_in_flight(limit or settings.RECONCILE_BATCH_SIZE)
            )
        finally:
            # Pooled clients are bound to this loop
            loop.run_until_complete(close_all_clients())
            loop.close()

        if summary["checked"]:
            logger.info(
                "Reconciled %d job(s): %d completed, %d failed, %d cancelled, %d still processing",
                summary["checked"], summary["completed"], summary["failed"],
                summary["cancelled"], summary["unchanged"],
            )
        return summary
    finally:
        db.close()
