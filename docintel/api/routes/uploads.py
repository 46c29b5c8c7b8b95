"""Customer document upload, extraction trigger, notification and deletion endpoints."""

import json
from typing import Annotated, AsyncIterator, List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import StreamingResponse

from docintel.api.errors import api_error
from docintel.config import settings
from docintel.core.exceptions import AppError, ValidationError
from docintel.database.models import Customer
from docintel.dependencies import (
    get_background_tasks,
    get_customer_repository,
    get_deletion_service,
    get_document_metadata_repository,
    get_extraction_runner,
    get_ingestion_pipeline,
    get_library_storage,
    get_notification_bus,
)
from docintel.models.request.uploads import MetadataExtractRequest
from docintel.models.response.response import ErrorResponse
from docintel.models.response.uploads import (
    DeletionResponse,
    ExtractionStartedResponse,
    NotificationsResponse,
    StoredFile,
    UploadResponse,
)
from docintel.repositories.customer_repository import CustomerRepository
from docintel.repositories.document_metadata_repository import DocumentMetadataRepository
from docintel.schemas.ingestion import ExtractionRequest, IngestionRequest
from docintel.schemas.metadata import DocumentMetadata
from docintel.services.background import BackgroundTasks
from docintel.services.correlation_store import CorrelationStore
from docintel.services.ingestion.deletion import DocumentDeletionService
from docintel.services.ingestion.pipeline import IngestionPipeline
from docintel.services.library_storage import LibraryStorage
from docintel.services.metadata.runner import ExtractionRunner
from docintel.services.notification_bus import NotificationBus, notification_stream
from docintel.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()

_ERRORS = {
    400: {"description": "Invalid request", "model": ErrorResponse},
    404: {"description": "Customer or file not found", "model": ErrorResponse},
}


def _check_customer_id(customer_id: int) -> None:
    if customer_id <= 0:
        raise api_error(status.HTTP_400_BAD_REQUEST, "ValidationError", "Invalid customer id")


async def _load_customer(customer_id: int, customers: CustomerRepository) -> Customer:
    _check_customer_id(customer_id)
    customer = await customers.get_by_id(customer_id)
    if customer is None:
        raise api_error(status.HTTP_404_NOT_FOUND, "CustomerNotFound", f"Customer {customer_id} not found")
    return customer


@router.post(
    "/{customer_id}",
    status_code=status.HTTP_201_CREATED,
    response_model=UploadResponse,
    response_model_exclude_none=True,
    responses=_ERRORS,
    summary="Upload a customer document",
    description=(
        "Store the file in the customer library and register it with the workspace "
        "service in the background. Downstream failures surface as notifications."
    ),
    operation_id="upload_customer_document",
)
async def upload_document(
    customer_id: int,
    file: Annotated[UploadFile, File(description="Document to upload")],
    customers: Annotated[CustomerRepository, Depends(get_customer_repository)],
    storage: Annotated[LibraryStorage, Depends(get_library_storage)],
    pipeline: Annotated[IngestionPipeline, Depends(get_ingestion_pipeline)],
    background: Annotated[BackgroundTasks, Depends(get_background_tasks)],
) -> UploadResponse:
    """Store an upload locally and start ingestion.

    Args:
        customer_id: Owning customer
        file: Multipart file
        customers: Customer repository
        storage: Library storage
        pipeline: Ingestion pipeline run in the background
        background: Task holder for the pipeline run

    Returns:
        UploadResponse: 201 once the file is stored locally

    Raises:
        HTTPException: 400 for unsafe names, 404 for unknown customers
    """
    customer = await _load_customer(customer_id, customers)
    documents_dir = storage.documents_dir(customer)

    try:
        path, size = await storage.store(documents_dir, file)
    except ValidationError as e:
        raise api_error(status.HTTP_400_BAD_REQUEST, "ValidationError", e.message) from e
    except AppError as e:
        raise api_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "StorageError", "Failed to store file", str(e)
        ) from e

    response = UploadResponse(file=StoredFile(name=path.name, size=size))

    if not customer.workspace_slug:
        response.warning = "Customer has no workspace; the document was stored locally only"
        return response
    if not pipeline.client.api_key:
        response.embedding_warning = "Workspace service is not configured; the document was not embedded"
        return response

    background.spawn(
        pipeline.ingest(
            IngestionRequest(
                customer_id=customer.id,
                customer_name=customer.name,
                customer_created_at=customer.created_at,
                workspace_slug=customer.workspace_slug,
                file_path=path,
                filename=path.name,
            )
        ),
        name=f"ingest-{customer.id}-{path.name}",
    )
    LOGGER.info("Upload accepted", extra={"customer_id": customer.id, "file_name": path.name, "size": size})
    return response


@router.post(
    "/{customer_id}/metadata-extract",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ExtractionStartedResponse,
    responses=_ERRORS,
    summary="Re-run metadata extraction",
    description="Start metadata extraction for a stored file; progress arrives as notifications.",
    operation_id="trigger_metadata_extraction",
)
async def trigger_metadata_extraction(
    customer_id: int,
    request: MetadataExtractRequest,
    customers: Annotated[CustomerRepository, Depends(get_customer_repository)],
    storage: Annotated[LibraryStorage, Depends(get_library_storage)],
    runner: Annotated[ExtractionRunner, Depends(get_extraction_runner)],
) -> ExtractionStartedResponse:
    _check_customer_id(customer_id)
    if not request.filename.strip():
        raise api_error(status.HTTP_400_BAD_REQUEST, "ValidationError", "Missing filename")

    customer = await _load_customer(customer_id, customers)
    documents_dir = storage.documents_dir(customer)
    try:
        path = storage.locate(documents_dir, request.filename)
    except ValidationError as e:
        raise api_error(status.HTTP_400_BAD_REQUEST, "ValidationError", e.message) from e
    if not path.is_file():
        raise api_error(status.HTTP_404_NOT_FOUND, "DocumentNotFound", f"File {request.filename} not found")
    if not customer.workspace_slug:
        raise api_error(status.HTTP_400_BAD_REQUEST, "ValidationError", "Customer has no workspace")

    entry = CorrelationStore(documents_dir).read(path.name)
    runner.launch(
        ExtractionRequest(
            customer_id=customer.id,
            file_path=path,
            filename=path.name,
            workspace_slug=customer.workspace_slug,
            document_name=entry.external_document_name if entry else None,
        )
    )
    return ExtractionStartedResponse()


@router.get(
    "/metadata-notifications/{customer_id}",
    response_model=NotificationsResponse,
    summary="Recent notifications",
    description="Latest ingestion and extraction notifications for a customer, newest first.",
    operation_id="list_metadata_notifications",
)
async def list_notifications(
    customer_id: int,
    bus: Annotated[NotificationBus, Depends(get_notification_bus)],
) -> NotificationsResponse:
    _check_customer_id(customer_id)
    return NotificationsResponse(notifications=bus.recent(customer_id, settings.notification_page_size))


@router.get(
    "/metadata-stream/{customer_id}",
    summary="Notification stream",
    description="Server-Sent Events stream of new notifications for a customer.",
    operation_id="stream_metadata_notifications",
)
async def stream_notifications(
    customer_id: int,
    bus: Annotated[NotificationBus, Depends(get_notification_bus)],
    filename: Annotated[Optional[str], Query(description="File whose latest state is sent first")] = None,
) -> StreamingResponse:
    _check_customer_id(customer_id)

    async def events() -> AsyncIterator[str]:
        async for message in notification_stream(
            bus,
            customer_id,
            tracked_filename=filename,
            poll_interval=settings.stream_poll_interval,
            snapshot_window=settings.stream_snapshot_window,
        ):
            yield f"data: {json.dumps(message)}\n\n"

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.delete(
    "/{customer_id}",
    response_model=DeletionResponse,
    response_model_exclude_none=True,
    responses=_ERRORS,
    summary="Delete a customer document",
    description="Remove the local file, its metadata and every workspace copy that can be found.",
    operation_id="delete_customer_document",
)
async def delete_document(
    customer_id: int,
    name: Annotated[str, Query(description="Stored file name")],
    customers: Annotated[CustomerRepository, Depends(get_customer_repository)],
    storage: Annotated[LibraryStorage, Depends(get_library_storage)],
    deletion: Annotated[DocumentDeletionService, Depends(get_deletion_service)],
) -> DeletionResponse:
    customer = await _load_customer(customer_id, customers)
    try:
        outcome = await deletion.delete(customer.id, storage.documents_dir(customer), name, customer.workspace_slug)
    except ValidationError as e:
        raise api_error(status.HTTP_400_BAD_REQUEST, "ValidationError", e.message) from e

    return DeletionResponse(
        removed_local=outcome.removed_local,
        removed_names=outcome.removed_names,
        documents_warning=outcome.documents_warning,
    )


@router.get(
    "/{customer_id}/metadata",
    response_model=List[DocumentMetadata],
    summary="List document metadata",
    operation_id="list_document_metadata",
)
async def list_document_metadata(
    customer_id: int,
    documents: Annotated[DocumentMetadataRepository, Depends(get_document_metadata_repository)],
) -> List[DocumentMetadata]:
    _check_customer_id(customer_id)
    return await documents.list_for_customer(customer_id)


@router.get(
    "/{customer_id}/metadata/{filename}",
    response_model=DocumentMetadata,
    responses=_ERRORS,
    summary="Get document metadata",
    operation_id="get_document_metadata",
)
async def get_document_metadata(
    customer_id: int,
    filename: str,
    documents: Annotated[DocumentMetadataRepository, Depends(get_document_metadata_repository)],
) -> DocumentMetadata:
    _check_customer_id(customer_id)
    metadata = await documents.get_by_filename(customer_id, filename)
    if metadata is None:
        raise api_error(status.HTTP_404_NOT_FOUND, "MetadataNotFound", f"No metadata for {filename}")
    return metadata
