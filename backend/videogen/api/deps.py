"""Shared FastAPI dependencies."""
from __future__ import annotations

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from videogen.database import get_db
from videogen.services.generation_service import GenerationService
from videogen.services.prediction_provider import ReplicateClient
from videogen.services.status_broadcaster import StatusBroadcaster, get_broadcaster


def get_caller_id(x_user_id: str | None = Header(default=None)) -> str | None:
    """Caller identity as verified and forwarded by the upstream identity provider."""
    return x_user_id.strip() if x_user_id and x_user_id.strip() else None


def get_prediction_provider() -> ReplicateClient:
    return ReplicateClient.from_settings()


def get_status_broadcaster() -> StatusBroadcaster | None:
    return get_broadcaster()


def get_generation_service(
    db: Session = Depends(get_db),
    provider: ReplicateClient = Depends(get_prediction_provider),
    broadcaster: StatusBroadcaster | None = Depends(get_status_broadcaster),
) -> GenerationService:
    return GenerationService(db, provider, broadcaster)
