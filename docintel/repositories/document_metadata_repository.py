"""Repository for per-file document metadata."""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from docintel.database.models import DocumentMetadataRecord
from docintel.repositories.base_repository import BaseRepository
from docintel.schemas.metadata import DocumentMetadata

# Columns written from a DocumentMetadata model on upsert
_WRITABLE_FIELDS = (
    "external_document_path",
    "file_size",
    "document_type",
    "purpose",
    "description",
    "key_topics",
    "data_categories",
    "mentioned_systems",
    "stakeholders",
    "tags",
    "estimated_page_count",
    "estimated_word_count",
    "has_tables",
    "has_images",
    "has_code_samples",
    "date_range",
    "meeting_date",
    "extra_fields",
    "analysis_version",
)


class DocumentMetadataRepository(BaseRepository[DocumentMetadataRecord]):
    """Keeps at most one live metadata row per (customer, filename)."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, DocumentMetadataRecord)

    async def get_by_filename(self, customer_id: int, filename: str) -> Optional[DocumentMetadata]:
        row = await self._get_row(customer_id, filename)
        return DocumentMetadata.model_validate(row) if row else None

    async def list_for_customer(self, customer_id: int) -> List[DocumentMetadata]:
        """All rows for a customer, most recently uploaded first."""
        rows = await self.get_all(
            filters={"customer_id": customer_id},
            order_by=[DocumentMetadataRecord.uploaded_at.desc(), DocumentMetadataRecord.id.desc()],
        )
        return [DocumentMetadata.model_validate(row) for row in rows]

    async def list_for_customers(self, customer_ids: Optional[Iterable[int]] = None) -> List[DocumentMetadata]:
        """Rows for the given customers, or every row when customer_ids is None.

        Ordered by (customer_id, id) so batch runs see a stable order.
        """
        filters = {"customer_id": list(customer_ids)} if customer_ids is not None else None
        rows = await self.get_all(
            filters=filters,
            order_by=[DocumentMetadataRecord.customer_id, DocumentMetadataRecord.id],
        )
        return [DocumentMetadata.model_validate(row) for row in rows]

    async def upsert(self, metadata: DocumentMetadata) -> DocumentMetadata:
        """Insert or replace the row for (customer_id, filename).

        Args:
            metadata: Freshly analyzed metadata

        Returns:
            DocumentMetadata: The stored row
        """
        values: Dict[str, Any] = {field: getattr(metadata, field) for field in _WRITABLE_FIELDS}
        values["last_analyzed"] = metadata.last_analyzed or datetime.now(timezone.utc)

        try:
            row = await self._get_row(metadata.customer_id, metadata.filename)
            if row is None:
                row = DocumentMetadataRecord(
                    customer_id=metadata.customer_id,
                    filename=metadata.filename,
                    **values,
                )
                if metadata.uploaded_at:
                    row.uploaded_at = metadata.uploaded_at
                self.session.add(row)
            else:
                for key, value in values.items():
                    setattr(row, key, value)
            await self.session.commit()
            await self.session.refresh(row)
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(
                f"Error saving metadata for {metadata.filename}: {e}",
                exc_info=True,
                extra={"customer_id": metadata.customer_id},
            )
            raise

        self.logger.info(
            "Saved document metadata",
            extra={"customer_id": metadata.customer_id, "file_name": metadata.filename, "row_id": row.id},
        )
        return DocumentMetadata.model_validate(row)

    async def save_extra_fields(self, document_id: int, extra_fields: Dict[str, Any]) -> bool:
        """Replace the extra_fields JSON of one row. Returns False if the row is gone."""
        row = await self.update(document_id, extra_fields=dict(extra_fields))
        return row is not None

    async def delete_by_filename(self, customer_id: int, filename: str) -> bool:
        try:
            result = await self.session.execute(
                delete(DocumentMetadataRecord).where(
                    DocumentMetadataRecord.customer_id == customer_id,
                    DocumentMetadataRecord.filename == filename,
                )
            )
            await self.session.commit()
            return (result.rowcount or 0) > 0
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(f"Error deleting metadata for {filename}: {e}", exc_info=True)
            raise

    async def _get_row(self, customer_id: int, filename: str) -> Optional[DocumentMetadataRecord]:
        try:
            result = await self.session.execute(
                select(DocumentMetadataRecord).where(
                    DocumentMetadataRecord.customer_id == customer_id,
                    DocumentMetadataRecord.filename == filename,
                )
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading metadata for {filename}: {e}", exc_info=True)
            raise
