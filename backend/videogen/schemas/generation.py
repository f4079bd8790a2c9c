"""Video generation request and response schemas."""
from datetime import datetime
from pydantic import BaseModel, Field
from videogen.schemas.common import (
    AspectRatio,
    JobStatus,
    Pagination,
    Resolution,
    VideoDuration,
)


class GenerationRequest(BaseModel):
    """Body of ``POST /generate``."""
    prompt: str = Field(..., min_length=1, max_length=1000, description="Text prompt for the video")
    image: str | None = Field(default=None, description="Image URL or data URI; switches to image-to-video mode")
    duration: VideoDuration | None = None
    aspect_ratio: AspectRatio | None = None
    resolution: Resolution | None = None

    model_config = {"str_strip_whitespace": True}


class GenerationStartResponse(BaseModel):
    message: str
    generation_id: str
    status: JobStatus


class GenerationStatusResponse(BaseModel):
    generation_id: str
    status: JobStatus
    video_url: str | None = None
    thumbnail_url: str | None = None
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime


class CancelResponse(BaseModel):
    message: str
    generation_id: str
    status: JobStatus


class DeleteResponse(BaseModel):
    message: str
    generation_id: str


class GenerationResponse(BaseModel):
    """Full row projection used by the listing endpoint."""
    id: str
    user_id: str | None
    prompt: str
    image_url: str | None
    model_type: str
    duration: int
    aspect_ratio: str
    resolution: str
    status: JobStatus
    external_id: str | None
    video_url: str | None
    thumbnail_url: str | None
    error_message: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class GenerationListResponse(BaseModel):
    generations: list[GenerationResponse]
    pagination: Pagination


class CreditsResponse(BaseModel):
    success: bool
    account: dict | None = None
    error: str | None = None
    note: str | None = None
