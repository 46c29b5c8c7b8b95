"""Types exchanged between the ingestion pipeline and the workspace service adapter."""

import re
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

# "<anything>/documents/<relative>" with either slash style, drive letter or root
_FULL_PATH_PATTERNS = (
    re.compile(r"[A-Z]:[/\\].*[/\\]documents[/\\](.+)$", re.IGNORECASE),
    re.compile(r"^[/\\].*[/\\]documents[/\\](.+)$", re.IGNORECASE),
)


class LocationKind(str, Enum):
    """How the workspace service reported where it stored an upload."""
    FULL_PATH = "full_path"
    RELATIVE_PATH = "relative_path"


class DocumentLocation(BaseModel):
    """Discriminated storage location of an uploaded document."""

    kind: LocationKind
    value: str
    relative_name: str = Field(..., description="Identifier relative to the service's documents root")

    @classmethod
    def parse(cls, raw: str) -> "DocumentLocation":
        """Classify a location string returned by an upload.

        Args:
            raw: Either an absolute filesystem path containing ``documents/``
                or an already-relative identifier like ``custom-documents/x.json``

        Returns:
            DocumentLocation with the relative identifier resolved
        """
        value = raw.strip()
        for pattern in _FULL_PATH_PATTERNS:
            match = pattern.search(value)
            if match:
                return cls(
                    kind=LocationKind.FULL_PATH,
                    value=value,
                    relative_name=match.group(1).replace("\\", "/"),
                )
        return cls(
            kind=LocationKind.RELATIVE_PATH,
            value=value,
            relative_name=value.replace("\\", "/"),
        )


class UploadedDocument(BaseModel):
    """Result of handing a file to the workspace service."""

    name: str = Field(..., description="Relative identifier used for move, verify and embed")
    location: Optional[DocumentLocation] = None
    title: Optional[str] = None


class ExternalDocument(BaseModel):
    """A file entry from the workspace service's document listing."""

    name: str
    qualified_name: str
    id: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None
    location: Optional[str] = None
    chunk_source: Optional[str] = None
    pinned_workspaces: List[str] = Field(default_factory=list)


class CorrelationEntry(BaseModel):
    """Sidecar record linking a local file to its workspace identifiers."""

    local_filename: str
    external_document_name: str
    external_document_names: List[str] = Field(default_factory=list)
    external_document_id: Optional[str] = None
    workspace_id: str
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def all_names(self) -> List[str]:
        names = [self.external_document_name, *self.external_document_names]
        return list(dict.fromkeys(name for name in names if name))


class IngestionOutcome(BaseModel):
    """What the ingestion pipeline achieved for one file."""

    registered: bool = False
    document_names: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class DeletionOutcome(BaseModel):
    """What a delete request managed to remove."""

    removed_local: bool = False
    removed_names: List[str] = Field(default_factory=list)
    documents_warning: Optional[str] = None


class IngestionRequest(BaseModel):
    """A locally stored upload waiting to be registered with the workspace service."""

    customer_id: int
    customer_name: Optional[str] = None
    customer_created_at: Optional[datetime] = None
    workspace_slug: str
    file_path: Path
    filename: str


class ExtractionRequest(BaseModel):
    """Input of one metadata extraction run."""

    customer_id: int
    file_path: Path
    filename: str
    workspace_slug: str
    document_name: Optional[str] = Field(
        default=None,
        description="Workspace identifier of the document, when known"
    )
