"""Pydantic response models for template matching endpoints."""

from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from docintel.schemas.jobs import MatchingJob


class JobListResponse(BaseModel):
    jobs: List[MatchingJob] = Field(default_factory=list)


class JobActionResponse(BaseModel):
    """Outcome of a cancel or clear request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ok: bool = True
    message: str
    removed_jobs: int = 0


class UnpinResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ok: bool = True
    unpinned: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
