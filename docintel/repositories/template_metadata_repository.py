"""Repository for template requirement metadata."""

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from docintel.database.models import TemplateMetadataRecord
from docintel.repositories.base_repository import BaseRepository
from docintel.schemas.metadata import TemplateMetadata

# Statistics are owned by record_generation_stats, not by re-analysis
_STAT_FIELDS = {"actual_generation_times", "generation_count", "avg_generation_time", "last_generated_at"}
_IDENTITY_FIELDS = {"id", "template_slug", "uploaded_at"}


class TemplateMetadataRepository(BaseRepository[TemplateMetadataRecord]):
    """One live row per template slug."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, TemplateMetadataRecord)

    async def get_by_slug(self, template_slug: str) -> Optional[TemplateMetadata]:
        row = await self._get_row(template_slug)
        return TemplateMetadata.model_validate(row) if row else None

    async def list_all(self, template_slugs: Optional[Iterable[str]] = None) -> List[TemplateMetadata]:
        """All templates, or only the named ones, ordered by slug."""
        filters = {"template_slug": list(template_slugs)} if template_slugs is not None else None
        rows = await self.get_all(filters=filters, order_by=TemplateMetadataRecord.template_slug)
        return [TemplateMetadata.model_validate(row) for row in rows]

    async def upsert(self, metadata: TemplateMetadata) -> TemplateMetadata:
        """Insert or replace analysis fields, preserving generation statistics."""
        values = metadata.model_dump(exclude=_STAT_FIELDS | _IDENTITY_FIELDS)
        values["last_analyzed"] = metadata.last_analyzed or datetime.now(timezone.utc)

        try:
            row = await self._get_row(metadata.template_slug)
            if row is None:
                row = TemplateMetadataRecord(template_slug=metadata.template_slug, **values)
                self.session.add(row)
            else:
                for key, value in values.items():
                    setattr(row, key, value)
            await self.session.commit()
            await self.session.refresh(row)
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(f"Error saving template metadata {metadata.template_slug}: {e}", exc_info=True)
            raise

        return TemplateMetadata.model_validate(row)

    async def record_generation_stats(
        self,
        template_slug: str,
        times: List[float],
        count: int,
        average: float,
        estimate: str,
    ) -> bool:
        """Write rolling generation statistics. Returns False for unknown slugs."""
        try:
            row = await self._get_row(template_slug)
            if row is None:
                return False
            row.actual_generation_times = list(times)
            row.generation_count = count
            row.avg_generation_time = average
            row.estimated_generation_time = estimate
            row.last_generated_at = datetime.now(timezone.utc)
            await self.session.commit()
            return True
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(f"Error recording generation time for {template_slug}: {e}", exc_info=True)
            raise

    async def delete_by_slug(self, template_slug: str) -> bool:
        row = await self._get_row(template_slug)
        if row is None:
            return False
        return await self.delete(row.id)

    async def _get_row(self, template_slug: str) -> Optional[TemplateMetadataRecord]:
        try:
            result = await self.session.execute(
                select(TemplateMetadataRecord).where(TemplateMetadataRecord.template_slug == template_slug)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading template metadata {template_slug}: {e}", exc_info=True)
            raise
