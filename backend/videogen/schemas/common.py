"""Shared / common schemas: enums, pagination, base responses."""
from datetime import datetime
from enum import Enum
from pydantic import BaseModel


# ── Enums ──────────────────────────────────────────────────────────────

class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    def can_transition_to(self, target: "JobStatus") -> bool:
        return target in ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})


class VideoDuration(int, Enum):
    SHORT = 5
    LONG = 10


class AspectRatio(str, Enum):
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"
    SQUARE = "1:1"
    STANDARD = "4:3"
    PORTRAIT_STANDARD = "3:4"
    ULTRA_WIDE = "21:9"
    ULTRA_TALL = "9:21"


class Resolution(str, Enum):
    SD = "480p"
    HD = "720p"
    FULL_HD = "1080p"


# ── Pagination ─────────────────────────────────────────────────────────

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


# ── Common Responses ───────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime
