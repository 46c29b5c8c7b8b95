"""Pydantic response models for upload endpoints."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from docintel.schemas.notifications import Notification


class StoredFile(BaseModel):
    """A file persisted in the customer library."""

    name: str
    size: int


class UploadResponse(BaseModel):
    """Response model for an accepted upload.

    Attributes:
        ok: Always true once the file is stored locally
        file: The stored file
        warning: Set when the customer has no workspace
        embedding_warning: Set when the workspace service cannot be reached
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ok: bool = True
    file: StoredFile
    warning: Optional[str] = None
    embedding_warning: Optional[str] = None


class ExtractionStartedResponse(BaseModel):
    ok: bool = True
    message: str = "Metadata extraction started"


class NotificationsResponse(BaseModel):
    """Latest notifications for one customer, newest first."""

    notifications: List[Notification] = Field(default_factory=list)


class DeletionResponse(BaseModel):
    """Response model for a delete request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ok: bool = True
    removed_local: bool = False
    removed_names: List[str] = Field(default_factory=list)
    documents_warning: Optional[str] = None
