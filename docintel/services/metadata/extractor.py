"""
AI metadata extraction for uploaded documents.

Runs after ingestion has embedded a document: waits for the workspace to
list it, asks the workspace chat for a JSON description, retries answers
that lack both a document type and a purpose, scores the result against
every known template and stores it.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from docintel.config import Settings, settings as default_settings
from docintel.core.ai_client import WorkspaceChatAI
from docintel.core.exceptions import AppError, ExtractionFailed
from docintel.core.workspace_client import WorkspaceClient
from docintel.prompts.metadata_prompts import build_document_analysis_prompt, document_kind
from docintel.repositories.document_metadata_repository import DocumentMetadataRepository
from docintel.repositories.template_metadata_repository import TemplateMetadataRepository
from docintel.schemas.ingestion import ExtractionRequest
from docintel.schemas.metadata import DocumentMetadata
from docintel.schemas.notifications import NotificationStatus
from docintel.services.external_documents import entry_is
from docintel.services.matching.stored_relevance import (
    merge_relevance,
    score_against_templates,
    with_relevance,
)
from docintel.services.notification_bus import NotificationBus
from docintel.utils.logging import get_logger
from docintel.utils.polling import poll_until

LOGGER = get_logger(__name__)

IndexRefresher = Callable[[int, str], Any]

# AI answer keys stored in dedicated columns; everything else goes to extra_fields
_FIELD_MAP = {
    "documentType": "document_type",
    "purpose": "purpose",
    "description": "description",
    "keyTopics": "key_topics",
    "dataCategories": "data_categories",
    "mentionedSystems": "mentioned_systems",
    "stakeholders": "stakeholders",
    "tags": "tags",
    "estimatedPageCount": "estimated_page_count",
    "estimatedWordCount": "estimated_word_count",
    "hasTables": "has_tables",
    "hasImages": "has_images",
    "hasCodeSamples": "has_code_samples",
    "dateRange": "date_range",
    "meetingDate": "meeting_date",
}
_INT_FIELDS = {"estimated_page_count", "estimated_word_count"}
_STR_FIELDS = {"document_type", "purpose", "description", "date_range", "meeting_date"}


def _optional_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError, OverflowError):
        return None


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def is_usable_analysis(parsed: Any) -> bool:
    """An answer is usable once it names a document type or a purpose."""
    return isinstance(parsed, dict) and bool(parsed.get("documentType") or parsed.get("purpose"))


def analysis_to_metadata(
    parsed: Dict[str, Any],
    customer_id: int,
    filename: str,
    external_document_path: Optional[str] = None,
    file_size: Optional[int] = None,
) -> DocumentMetadata:
    """Map an AI answer onto DocumentMetadata, keeping unknown keys in extra_fields."""
    fields: Dict[str, Any] = {}
    extra: Dict[str, Any] = {}

    for key, value in parsed.items():
        if value is None:
            continue
        field = _FIELD_MAP.get(key)
        if field is None:
            extra[key] = value
        elif field in _INT_FIELDS:
            fields[field] = _optional_int(value)
        elif field in _STR_FIELDS:
            fields[field] = _optional_text(value)
        else:
            fields[field] = value

    # A chart implies tabular data
    if parsed.get("hasCharts"):
        fields["has_tables"] = True

    return DocumentMetadata(
        customer_id=customer_id,
        filename=filename,
        external_document_path=external_document_path,
        file_size=file_size,
        extra_fields=extra,
        last_analyzed=datetime.now(timezone.utc),
        **fields,
    )


class MetadataExtractor:
    """Produces and stores a DocumentMetadata row for one uploaded file."""

    def __init__(
        self,
        ai: WorkspaceChatAI,
        client: WorkspaceClient,
        notifications: NotificationBus,
        documents: DocumentMetadataRepository,
        templates: TemplateMetadataRepository,
        refresh_index: Optional[IndexRefresher] = None,
        config: Settings = default_settings,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the extractor.

        Args:
            ai: Workspace chat AI used for analysis
            client: Workspace service client, used for the indexing wait
            notifications: Bus receiving processing/complete/error events
            documents: Document metadata repository
            templates: Template metadata repository
            refresh_index: Callable scheduling a workspace index refresh for
                (customer_id, workspace_slug) without awaiting it
            config: Retry and polling settings
            sleep: Awaitable sleep (injectable for tests)
            clock: Monotonic clock (injectable for tests)
        """
        self.ai = ai
        self.client = client
        self.notifications = notifications
        self.documents = documents
        self.templates = templates
        self.refresh_index = refresh_index
        self.config = config
        self.sleep = sleep
        self.clock = clock

    async def extract(self, request: ExtractionRequest) -> DocumentMetadata:
        """Analyze one document and store its metadata.

        Args:
            request: File, customer and workspace to analyze

        Returns:
            DocumentMetadata: The stored row

        Raises:
            ExtractionFailed: If no usable analysis was produced or storing failed
        """
        log_extra = {"customer_id": request.customer_id, "file_name": request.filename}
        self.notifications.publish(
            request.customer_id,
            request.filename,
            NotificationStatus.PROCESSING,
            "Analyzing document metadata...",
        )

        try:
            target = request.document_name or request.filename
            await self._wait_until_indexed(request.workspace_slug, target)

            metadata = await self._analyze(request, target)
            templates = await self.templates.list_all()
            ranked = score_against_templates(metadata, templates)
            metadata.extra_fields = with_relevance(
                metadata.extra_fields,
                merge_relevance([], ranked, self.config.stored_relevance_on_extract),
            )

            saved = await self.documents.upsert(metadata)
        except Exception as e:
            LOGGER.error("Metadata extraction failed", exc_info=True, extra=log_extra)
            self.notifications.publish(
                request.customer_id,
                request.filename,
                NotificationStatus.ERROR,
                f"Failed to extract metadata: {e}",
            )
            if isinstance(e, ExtractionFailed):
                raise
            raise ExtractionFailed(str(e), original_error=e) from e

        if self.refresh_index is not None:
            self.refresh_index(request.customer_id, request.workspace_slug)

        self.notifications.publish(
            request.customer_id,
            request.filename,
            NotificationStatus.COMPLETE,
            f"Metadata extracted successfully for {request.filename}",
        )
        LOGGER.info(
            "Extracted document metadata",
            extra={
                **log_extra,
                "document_type": saved.document_type,
                "topics": len(saved.key_topics),
                "templates_scored": len(ranked),
            },
        )
        return saved

    async def _wait_until_indexed(self, workspace_slug: str, target: str) -> None:
        async def listed() -> bool:
            documents = await self.client.workspace_documents(workspace_slug)
            return any(entry_is(doc, target) for doc in documents)

        result = await poll_until(
            listed,
            interval=self.config.indexing_poll_interval,
            deadline=self.config.indexing_max_wait,
            description=f"workspace listing of {target}",
            sleep=self.sleep,
            clock=self.clock,
        )
        if not result.satisfied:
            LOGGER.warning(
                "Document not listed in workspace yet; analyzing anyway",
                extra={"workspace": workspace_slug, "doc_name": target},
            )

    async def _analyze(self, request: ExtractionRequest, target: str) -> DocumentMetadata:
        prompt = build_document_analysis_prompt(request.filename, target)
        attempts = self.config.extraction_max_attempts
        last_error = "no usable answer"

        for attempt in range(1, attempts + 1):
            try:
                _, parsed = await self.ai.complete_json(prompt, request.workspace_slug)
                if is_usable_analysis(parsed):
                    return analysis_to_metadata(
                        parsed,
                        customer_id=request.customer_id,
                        filename=request.filename,
                        external_document_path=request.document_name,
                        file_size=await self._file_size(request),
                    )
                last_error = "answer had neither documentType nor purpose"
            except AppError as e:
                last_error = str(e)
            except (TypeError, ValueError, OverflowError) as e:
                # Answer had the right keys with unusable values
                last_error = f"malformed answer: {e}"

            LOGGER.warning(
                f"Analysis attempt {attempt}/{attempts} unusable: {last_error}",
                extra={"file_name": request.filename, "kind": document_kind(request.filename)},
            )
            if attempt < attempts:
                await self.sleep(self.config.extraction_retry_delay)

        raise ExtractionFailed(f"No usable analysis after {attempts} attempts: {last_error}")

    @staticmethod
    async def _file_size(request: ExtractionRequest) -> Optional[int]:
        try:
            stat = await asyncio.to_thread(request.file_path.stat)
        except OSError:
            return None
        return stat.st_size
