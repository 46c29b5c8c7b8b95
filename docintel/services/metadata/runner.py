"""
Background execution of metadata extraction.

Extraction outlives the request that triggered it, so each run opens its own
database session instead of borrowing the request-scoped one. Index refreshes
that follow a successful run are spawned the same way.
"""

import asyncio
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docintel.config import Settings, settings as default_settings
from docintel.core.ai_client import WorkspaceChatAI
from docintel.core.exceptions import ExtractionFailed
from docintel.core.workspace_client import WorkspaceClient
from docintel.repositories.document_metadata_repository import DocumentMetadataRepository
from docintel.repositories.template_metadata_repository import TemplateMetadataRepository
from docintel.schemas.ingestion import ExtractionRequest
from docintel.schemas.metadata import DocumentMetadata
from docintel.services.background import BackgroundTasks
from docintel.services.metadata.extractor import MetadataExtractor
from docintel.services.metadata.workspace_index import WorkspaceIndexPublisher
from docintel.services.notification_bus import NotificationBus
from docintel.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ExtractionRunner:
    """Spawns extractor runs and the index refreshes that follow them."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ai: WorkspaceChatAI,
        client: WorkspaceClient,
        notifications: NotificationBus,
        background: BackgroundTasks,
        index_publisher: WorkspaceIndexPublisher,
        config: Settings = default_settings,
    ):
        self.session_factory = session_factory
        self.ai = ai
        self.client = client
        self.notifications = notifications
        self.background = background
        self.index_publisher = index_publisher
        self.config = config

    def launch(self, request: ExtractionRequest) -> asyncio.Task:
        """Schedule one extraction without awaiting it."""
        return self.background.spawn(
            self.run(request),
            name=f"extract-{request.customer_id}-{request.filename}",
        )

    async def run(self, request: ExtractionRequest) -> Optional[DocumentMetadata]:
        """Run one extraction in a fresh session.

        Returns:
            The stored metadata, or None when extraction failed. The failure
            has already been published as an error notification.
        """
        async with self.session_factory() as session:
            extractor = MetadataExtractor(
                ai=self.ai,
                client=self.client,
                notifications=self.notifications,
                documents=DocumentMetadataRepository(session),
                templates=TemplateMetadataRepository(session),
                refresh_index=self.schedule_index_refresh,
                config=self.config,
            )
            try:
                return await extractor.extract(request)
            except ExtractionFailed:
                return None

    def schedule_index_refresh(self, customer_id: int, workspace_slug: str) -> asyncio.Task:
        return self.background.spawn(
            self.refresh_index(customer_id, workspace_slug),
            name=f"workspace-index-{customer_id}",
        )

    async def refresh_index(self, customer_id: int, workspace_slug: str) -> bool:
        """Rebuild the customer's workspace index from the stored metadata."""
        async with self.session_factory() as session:
            documents = await DocumentMetadataRepository(session).list_for_customer(customer_id)
        return await self.index_publisher.refresh(customer_id, workspace_slug, documents)
