"""Batch matching job state."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class JobStatus(str, Enum):
    """Lifecycle of a matching job."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class MatchingJob(BaseModel):
    """Progress-tracked batch run of the relevance engine."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    status: JobStatus = JobStatus.PENDING
    template_slugs: Optional[List[str]] = None
    customer_ids: Optional[List[int]] = None
    force_recalculate: bool = False
    total_documents: int = 0
    processed_documents: int = 0
    matched_documents: int = 0
    skipped_documents: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    created_by: Optional[str] = None
