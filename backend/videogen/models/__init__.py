"""SQLAlchemy ORM models package."""
from videogen.models.generation_job import GenerationJob

__all__ = [
    "GenerationJob",
]
