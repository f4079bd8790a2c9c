"""Video generation endpoints — submit, poll status, cancel, delete, list."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from videogen.api.deps import get_caller_id, get_generation_service, get_prediction_provider
from videogen.config import get_settings
from videogen.exceptions import ProviderError
from videogen.models import GenerationJob
from videogen.schemas.common import JobStatus, Pagination
from videogen.schemas.generation import (
    CancelResponse,
    CreditsResponse,
    DeleteResponse,
    GenerationListResponse,
    GenerationRequest,
    GenerationResponse,
    GenerationStartResponse,
    GenerationStatusResponse,
)
from videogen.services.generation_service import GenerationService
from videogen.services.prediction_provider import ReplicateClient

router = APIRouter()
logger = logging.getLogger(__name__)


def _to_status_response(job: GenerationJob) -> GenerationStatusResponse:
    return GenerationStatusResponse(
        generation_id=job.id,
        status=job.status,
        video_url=job.video_url,
        thumbnail_url=job.thumbnail_url,
        error_message=job.error_message,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


@router.get("/credits", response_model=CreditsResponse)
async def check_credits(provider: ReplicateClient = Depends(get_prediction_provider)):
    """Report the provider account behind the configured API token."""
    try:
        account = await provider.get_account()
    except ProviderError as e:
        logger.warning("Credits check failed: %s", e.message)
        return CreditsResponse(
            success=False,
            error=e.message,
            note="This might indicate an API token issue",
        )
    return CreditsResponse(success=True, account=account)


@router.post(
    "/generate",
    response_model=GenerationStartResponse,
    status_code=201,
    responses={500: {"description": "Provider rejected the request; the job is recorded as failed"}},
)
async def generate_video(
    request: GenerationRequest,
    service: GenerationService = Depends(get_generation_service),
    caller_id: str | None = Depends(get_caller_id),
):
    """Start a video generation job."""
    try:
        job = await service.submit(request, user_id=caller_id)
    except ProviderError as e:
        return JSONResponse(
            status_code=500,
            content={
                "error": "Failed to start video generation",
                "detail": e.message,
                "generation_id": e.generation_id,
            },
        )
    return GenerationStartResponse(
        message="Video generation started successfully",
        generation_id=job.id,
        status=job.status,
    )


@router.get("/status/{generation_id}", response_model=GenerationStatusResponse)
async def get_generation_status(
    generation_id: str,
    service: GenerationService = Depends(get_generation_service),
    caller_id: str | None = Depends(get_caller_id),
):
    """Return the job, refreshing it from the provider while it is processing."""
    job = await service.get_status(generation_id, user_id=caller_id)
    return _to_status_response(job)


@router.get("/list", response_model=GenerationListResponse)
def list_generations(
    page: int = Query(1, ge=1),
    limit: int = Query(get_settings().DEFAULT_PAGE_SIZE, ge=1, le=get_settings().MAX_PAGE_SIZE),
    service: GenerationService = Depends(get_generation_service),
    caller_id: str | None = Depends(get_caller_id),
):
    jobs, total = service.list_jobs(page=page, limit=limit, user_id=caller_id)
    return GenerationListResponse(
        generations=[GenerationResponse.model_validate(j) for j in jobs],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=(total + limit - 1) // limit,
        ),
    )


@router.post("/cancel/{generation_id}", response_model=CancelResponse)
async def cancel_generation(
    generation_id: str,
    service: GenerationService = Depends(get_generation_service),
    caller_id: str | None = Depends(get_caller_id),
):
    """Cancel a processing job."""
    job = await service.cancel(generation_id, user_id=caller_id)
    return CancelResponse(
        message="Video generation cancelled successfully",
        generation_id=job.id,
        status=JobStatus(job.status),
    )


@router.delete("/{generation_id}", response_model=DeleteResponse)
def delete_generation(
    generation_id: str,
    service: GenerationService = Depends(get_generation_service),
    caller_id: str | None = Depends(get_caller_id),
):
    deleted_id = service.delete(generation_id, user_id=caller_id)
    return DeleteResponse(message="Video generation deleted successfully", generation_id=deleted_id)
