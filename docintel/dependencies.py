"""Centralized dependency injection for the FastAPI application.

Process-wide collaborators (external client, notification bus, relevance
cache, job registry, background task holder) are created once and shared;
repositories and request-scoped services are built per request from the
session dependency.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from docintel.config import settings
from docintel.core.ai_client import WorkspaceChatAI
from docintel.core.workspace_client import WorkspaceClient
from docintel.database.base import async_session_maker, get_async_session
from docintel.repositories.customer_repository import CustomerRepository
from docintel.repositories.document_metadata_repository import DocumentMetadataRepository
from docintel.repositories.template_metadata_repository import TemplateMetadataRepository
from docintel.services.background import BackgroundTasks
from docintel.services.ingestion.deletion import DocumentDeletionService
from docintel.services.ingestion.pipeline import IngestionPipeline
from docintel.services.jobs.scheduler import MatchingJobScheduler
from docintel.services.library_storage import LibraryStorage
from docintel.services.matching.cache import RelevanceCache
from docintel.services.matching.engine import MatchingContext, MatchingEngine
from docintel.services.matching.reranker import AIReranker
from docintel.services.metadata.runner import ExtractionRunner
from docintel.services.metadata.template_characterizer import TemplateCharacterizer
from docintel.services.metadata.workspace_index import WorkspaceIndexPublisher
from docintel.services.notification_bus import NotificationBus
from docintel.services.pinning import PinningController


# ----------------------------------------------------------------------
# Process-wide singletons
# ----------------------------------------------------------------------

@lru_cache
def get_workspace_client() -> WorkspaceClient:
    """Get the shared workspace service client.

    Returns:
        WorkspaceClient: Client configured from settings
    """
    return WorkspaceClient(
        base_url=settings.workspace_api_url,
        api_key=settings.workspace_api_key,
        timeout=settings.http_timeout,
        max_retries=settings.max_retries,
        retry_delay=settings.retry_delay,
        default_upload_folder=settings.default_upload_folder,
    )


@lru_cache
def get_chat_ai() -> WorkspaceChatAI:
    """Get the AI text function backed by workspace chat."""
    return WorkspaceChatAI(get_workspace_client())


@lru_cache
def get_notification_bus() -> NotificationBus:
    """Get the process-wide notification bus.

    Returns:
        NotificationBus: Bounded, deduplicating event log
    """
    return NotificationBus(
        capacity=settings.notification_capacity,
        dedup_window=settings.notification_dedup_window,
    )


@lru_cache
def get_library_storage() -> LibraryStorage:
    return LibraryStorage(settings.library_root)


@lru_cache
def get_background_tasks() -> BackgroundTasks:
    return BackgroundTasks()


@lru_cache
def get_matching_engine() -> MatchingEngine:
    """Get the relevance engine with its shared cache and AI re-ranker.

    Returns:
        MatchingEngine: Engine used by match requests and batch jobs
    """
    cache: RelevanceCache[MatchingContext] = RelevanceCache(
        ttl=settings.relevance_cache_ttl,
        capacity=settings.relevance_cache_capacity,
    )
    reranker = AIReranker(
        get_chat_ai(),
        timeout=settings.ai_rerank_timeout,
        shortlist_size=settings.ai_rerank_shortlist,
    )
    return MatchingEngine(cache, reranker)


@lru_cache
def get_job_scheduler() -> MatchingJobScheduler:
    """Get the in-memory matching job registry.

    Returns:
        MatchingJobScheduler: Scheduler whose jobs open their own sessions
    """
    return MatchingJobScheduler(async_session_maker, get_matching_engine(), get_background_tasks())


@lru_cache
def get_extraction_runner() -> ExtractionRunner:
    """Get the runner that executes metadata extraction in the background.

    Returns:
        ExtractionRunner: Runner sharing the bus, client and task holder
    """
    return ExtractionRunner(
        session_factory=async_session_maker,
        ai=get_chat_ai(),
        client=get_workspace_client(),
        notifications=get_notification_bus(),
        background=get_background_tasks(),
        index_publisher=WorkspaceIndexPublisher(get_workspace_client()),
    )


# ----------------------------------------------------------------------
# Repositories
# ----------------------------------------------------------------------

async def get_customer_repository(
    db_session: Annotated[AsyncSession, Depends(get_async_session)]
) -> CustomerRepository:
    """Get customer repository instance.

    Args:
        db_session: Database session from dependency injection

    Returns:
        CustomerRepository: Repository for customer lookups
    """
    return CustomerRepository(db_session)


async def get_document_metadata_repository(
    db_session: Annotated[AsyncSession, Depends(get_async_session)]
) -> DocumentMetadataRepository:
    """Get document metadata repository instance.

    Args:
        db_session: Database session from dependency injection

    Returns:
        DocumentMetadataRepository: Repository for per-file metadata
    """
    return DocumentMetadataRepository(db_session)


async def get_template_metadata_repository(
    db_session: Annotated[AsyncSession, Depends(get_async_session)]
) -> TemplateMetadataRepository:
    """Get template metadata repository instance.

    Args:
        db_session: Database session from dependency injection

    Returns:
        TemplateMetadataRepository: Repository for template requirements
    """
    return TemplateMetadataRepository(db_session)


# ----------------------------------------------------------------------
# Services
# ----------------------------------------------------------------------

async def get_ingestion_pipeline(
    client: Annotated[WorkspaceClient, Depends(get_workspace_client)],
    notifications: Annotated[NotificationBus, Depends(get_notification_bus)],
    runner: Annotated[ExtractionRunner, Depends(get_extraction_runner)],
) -> IngestionPipeline:
    """Get ingestion pipeline instance.

    Args:
        client: Workspace service client
        notifications: Bus receiving failure events
        runner: Extraction runner launched after a successful embed

    Returns:
        IngestionPipeline: Pipeline that registers stored uploads
    """
    return IngestionPipeline(client, notifications, launch_extraction=runner.launch)


async def get_deletion_service(
    client: Annotated[WorkspaceClient, Depends(get_workspace_client)],
    documents: Annotated[DocumentMetadataRepository, Depends(get_document_metadata_repository)],
) -> DocumentDeletionService:
    return DocumentDeletionService(client, documents)


async def get_template_characterizer(
    ai: Annotated[WorkspaceChatAI, Depends(get_chat_ai)],
    templates: Annotated[TemplateMetadataRepository, Depends(get_template_metadata_repository)],
) -> TemplateCharacterizer:
    """Get template characterizer instance.

    Args:
        ai: AI text function
        templates: Template metadata repository

    Returns:
        TemplateCharacterizer: Service analyzing templates and timing generations
    """
    return TemplateCharacterizer(ai, templates)


async def get_pinning_controller(
    client: Annotated[WorkspaceClient, Depends(get_workspace_client)],
    documents: Annotated[DocumentMetadataRepository, Depends(get_document_metadata_repository)],
) -> PinningController:
    return PinningController(client, documents, min_score=settings.pin_min_score)
