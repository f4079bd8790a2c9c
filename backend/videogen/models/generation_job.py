"""GenerationJob model — one row per user video generation request."""
import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Text, Integer, DateTime, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from videogen.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GenerationJob(Base):
    __tablename__ = "video_generations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Request
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    model_type: Mapped[str] = mapped_column(String(100), nullable=False, default="seedance-1-lite")
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    aspect_ratio: Mapped[str] = mapped_column(String(10), nullable=False, default="16:9")
    resolution: Mapped[str] = mapped_column(String(10), nullable=False, default="720p")

    # Lifecycle
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")  # pending | processing | completed | failed | cancelled
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Result
    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    output_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("ix_video_generations_user_id", "user_id"),
        Index("ix_video_generations_status", "status"),
        Index("ix_video_generations_created_at", "created_at"),
        Index("ix_video_generations_external_id", "external_id"),
    )

    def __repr__(self) -> str:
        return f"<GenerationJob {self.id[:8]} ({self.status})>"
