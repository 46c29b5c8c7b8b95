"""Getting uploaded files into, and out of, the workspace service."""

from docintel.services.ingestion.deletion import DocumentDeletionService
from docintel.services.ingestion.pipeline import IngestionPipeline

__all__ = ["IngestionPipeline", "DocumentDeletionService"]
