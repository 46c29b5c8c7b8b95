"""
Registration of uploaded files with the workspace service.

The service is eventually consistent and its move/rename endpoint is
unreliable, so every step after local storage is best-effort: a step that
times out or fails leaves a warning and the pipeline carries on with the
best identifier it has.
"""

import asyncio
import time
from pathlib import PurePosixPath
from typing import Any, Awaitable, Callable, List, Optional

from docintel.config import Settings, settings as default_settings
from docintel.core.exceptions import AppError
from docintel.core.workspace_client import WorkspaceClient
from docintel.schemas.ingestion import (
    CorrelationEntry,
    ExtractionRequest,
    IngestionOutcome,
    IngestionRequest,
    UploadedDocument,
)
from docintel.schemas.notifications import NotificationStatus
from docintel.services.correlation_store import CorrelationStore
from docintel.services.external_documents import entry_is, matches_upload
from docintel.services.notification_bus import NotificationBus
from docintel.utils.logging import get_logger
from docintel.utils.naming import customer_folder_name
from docintel.utils.polling import poll_until

LOGGER = get_logger(__name__)

ExtractionLauncher = Callable[[ExtractionRequest], Any]


class IngestionPipeline:
    """Upload, wait for indexing, organize, verify, embed, then hand off to extraction."""

    def __init__(
        self,
        client: WorkspaceClient,
        notifications: NotificationBus,
        launch_extraction: Optional[ExtractionLauncher] = None,
        config: Settings = default_settings,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the pipeline.

        Args:
            client: Workspace service client
            notifications: Bus that receives failure events
            launch_extraction: Callable that schedules metadata extraction
                without awaiting it
            config: Retry and polling settings
            sleep: Awaitable sleep (injectable for tests)
            clock: Monotonic clock (injectable for tests)
        """
        self.client = client
        self.notifications = notifications
        self.launch_extraction = launch_extraction
        self.config = config
        self.sleep = sleep
        self.clock = clock

    async def ingest(self, request: IngestionRequest) -> IngestionOutcome:
        """Register a locally stored file with the workspace service.

        Never raises: the file is already stored locally, so every failure
        is reported through ``warnings`` and the notification bus.

        Args:
            request: The stored upload and its owning customer/workspace

        Returns:
            IngestionOutcome with the discovered identifiers and any warnings
        """
        outcome = IngestionOutcome()
        log_extra = {"customer_id": request.customer_id, "file_name": request.filename}
        aborted = False

        try:
            await self._run(request, outcome)
        except Exception as e:
            LOGGER.error("Ingestion aborted unexpectedly", exc_info=True, extra=log_extra)
            outcome.warnings.append(f"Ingestion stopped early: {e}")
            aborted = True

        # Once launched, extraction publishes its own events
        if aborted or not outcome.document_names:
            self.notifications.publish(
                request.customer_id,
                request.filename,
                NotificationStatus.ERROR,
                "; ".join(outcome.warnings) or "Document could not be registered",
            )

        LOGGER.info(
            "Ingestion finished",
            extra={**log_extra, "registered": outcome.registered, "warning_count": len(outcome.warnings)},
        )
        return outcome

    async def _run(self, request: IngestionRequest, outcome: IngestionOutcome) -> None:
        folder = customer_folder_name(request.customer_id, request.customer_name, request.customer_created_at)
        await self._ensure_folder(folder)

        uploaded = await self._upload(request, outcome)
        if uploaded is None:
            return

        await self._wait_for_indexing(uploaded.name, outcome)

        current_name = await self._organize(uploaded.name, folder, outcome)

        folders = [folder] + [str(PurePosixPath(name).parent) for name in (uploaded.name, current_name)]
        names = await self._verify_exists(request.filename, current_name, folders, outcome)
        outcome.document_names = names

        document_id = await self._lookup_document_id(names[0])
        CorrelationStore(request.file_path.parent).write(
            CorrelationEntry(
                local_filename=request.filename,
                external_document_name=names[0],
                external_document_names=names,
                external_document_id=document_id,
                workspace_id=request.workspace_slug,
            )
        )

        outcome.registered = await self._embed(request.workspace_slug, names, outcome)

        # Extraction runs even when embedding was not confirmed
        if self.launch_extraction is not None:
            self.launch_extraction(
                ExtractionRequest(
                    customer_id=request.customer_id,
                    file_path=request.file_path,
                    filename=request.filename,
                    workspace_slug=request.workspace_slug,
                    document_name=names[0],
                )
            )

    async def _ensure_folder(self, folder: str) -> None:
        try:
            await self.client.create_folder(folder)
        except AppError as e:
            # Usually "already exists"
            LOGGER.debug("Folder creation failed", extra={"folder": folder, "error": str(e)})

    async def _upload(self, request: IngestionRequest, outcome: IngestionOutcome) -> Optional[UploadedDocument]:
        try:
            content = await asyncio.to_thread(request.file_path.read_bytes)
            uploaded = await self.client.upload_document(content, request.filename)
        except (AppError, OSError) as e:
            LOGGER.error(
                "Upload to workspace service failed",
                exc_info=True,
                extra={"customer_id": request.customer_id, "file_name": request.filename},
            )
            outcome.warnings.append(f"Upload to workspace service failed: {e}")
            return None

        LOGGER.info(
            "Uploaded to workspace service",
            extra={
                "file_name": request.filename,
                "doc_name": uploaded.name,
                "location_kind": uploaded.location.kind.value if uploaded.location else "name",
            },
        )
        return uploaded

    async def _wait_for_indexing(self, name: str, outcome: IngestionOutcome) -> None:
        async def indexed() -> bool:
            documents = await self.client.list_documents()
            return any(entry_is(doc, name) for doc in documents)

        result = await poll_until(
            indexed,
            interval=self.config.indexing_poll_interval,
            deadline=self.config.indexing_max_wait,
            description=f"indexing of {name}",
            sleep=self.sleep,
            clock=self.clock,
        )
        if not result.satisfied:
            outcome.warnings.append(
                f"Indexing not confirmed within {self.config.indexing_max_wait:g}s; continuing"
            )

    async def _organize(self, name: str, folder: str, outcome: IngestionOutcome) -> str:
        """Move the document into the customer folder, or keep its original name."""
        target = f"{folder}/{PurePosixPath(name).name}"
        if target == name:
            return name

        attempts = self.config.move_max_attempts
        for attempt in range(1, attempts + 1):
            try:
                if await self.client.move_document(name, target):
                    LOGGER.info("Organized document", extra={"source": name, "target": target})
                    return target
                # Explicit refusal is not retried
                LOGGER.warning("Move refused by workspace service", extra={"source": name, "target": target})
                break
            except AppError as e:
                LOGGER.warning(
                    f"Move attempt {attempt}/{attempts} failed",
                    extra={"source": name, "target": target, "error": str(e)},
                )
                if attempt < attempts:
                    await self.sleep(self.config.move_retry_delay)

        outcome.warnings.append(f"Could not organize document into {folder}; using {name}")
        return name

    async def _verify_exists(
        self, filename: str, current_name: str, folders: List[str], outcome: IngestionOutcome
    ) -> List[str]:
        """Discover the identifiers the service actually assigned to the upload.

        Only entries inside ``folders`` (the customer folder and the folders
        the upload passed through) are considered, so uploads of other
        customers with similar names are never picked up.
        """
        scopes = [scope for scope in dict.fromkeys(folders) if scope not in ("", ".")]

        async def discovered() -> List[str]:
            documents = await self.client.list_documents()
            return [doc.qualified_name for doc in documents if matches_upload(doc, filename, scopes)]

        result = await poll_until(
            discovered,
            interval=self.config.verify_poll_interval,
            deadline=self.config.verify_max_wait,
            description=f"listing of {filename}",
            sleep=self.sleep,
            clock=self.clock,
        )

        if not result.satisfied:
            outcome.warnings.append(f"Document not found in listing; using {current_name}")
            return [current_name]

        names = list(dict.fromkeys(result.value))
        # Keep the name we expect first when the service reports it
        if current_name in names:
            names.remove(current_name)
            names.insert(0, current_name)
        return names

    async def _lookup_document_id(self, name: str) -> Optional[str]:
        try:
            response = await self.client.get_document(name)
        except AppError as e:
            LOGGER.debug("Document id lookup failed", extra={"doc_name": name, "error": str(e)})
            return None
        if not isinstance(response, dict):
            return None
        document = response.get("document") if isinstance(response.get("document"), dict) else response
        doc_id = document.get("id")
        return None if doc_id is None else str(doc_id)

    async def _embed(self, workspace_slug: str, names: List[str], outcome: IngestionOutcome) -> bool:
        attempts = self.config.embed_max_attempts
        for attempt in range(1, attempts + 1):
            try:
                response = await self.client.update_embeddings(workspace_slug, adds=names)
                message = str(response.get("message") or "") if isinstance(response, dict) else ""
                if _looks_failed(message):
                    LOGGER.warning(
                        f"Embed attempt {attempt}/{attempts} reported: {message}",
                        extra={"workspace": workspace_slug},
                    )
                else:
                    LOGGER.info("Embedded documents", extra={"workspace": workspace_slug, "count": len(names)})
                    return True
            except AppError as e:
                LOGGER.warning(
                    f"Embed attempt {attempt}/{attempts} failed",
                    extra={"workspace": workspace_slug, "error": str(e)},
                )
            if attempt < attempts:
                await self.sleep(self.config.embed_retry_delay)

        outcome.warnings.append(f"Embedding into workspace {workspace_slug} not confirmed after {attempts} attempts")
        return False


def _looks_failed(message: str) -> bool:
    lowered = message.lower()
    return "error" in lowered or "failed" in lowered
