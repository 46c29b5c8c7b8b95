"""Template matching, batch relevance jobs and document pinning endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from docintel.api.errors import api_error
from docintel.core.exceptions import JobNotFoundError
from docintel.dependencies import (
    get_customer_repository,
    get_document_metadata_repository,
    get_job_scheduler,
    get_matching_engine,
    get_pinning_controller,
    get_template_metadata_repository,
)
from docintel.models.request.matching import CreateJobRequest, MatchTemplateRequest, PinRequest, UnpinRequest
from docintel.models.response.matching import JobActionResponse, JobListResponse, UnpinResponse
from docintel.models.response.response import ErrorResponse
from docintel.repositories.customer_repository import CustomerRepository
from docintel.repositories.document_metadata_repository import DocumentMetadataRepository
from docintel.repositories.template_metadata_repository import TemplateMetadataRepository
from docintel.schemas.jobs import MatchingJob
from docintel.services.jobs.scheduler import MatchingJobScheduler
from docintel.services.matching.engine import MatchingContext, MatchingEngine
from docintel.services.pinning import PinningController, PinningResult
from docintel.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()

_NOT_FOUND = {404: {"description": "Not found", "model": ErrorResponse}}


@router.post(
    "/match-template",
    response_model=MatchingContext,
    responses=_NOT_FOUND,
    summary="Rank documents for a template",
    description=(
        "Rank a customer's documents against a template, optionally re-ranking the "
        "top candidates with the workspace AI, and build the generation context."
    ),
    operation_id="match_template",
)
async def match_template(
    request: MatchTemplateRequest,
    engine: Annotated[MatchingEngine, Depends(get_matching_engine)],
    templates: Annotated[TemplateMetadataRepository, Depends(get_template_metadata_repository)],
    documents: Annotated[DocumentMetadataRepository, Depends(get_document_metadata_repository)],
    customers: Annotated[CustomerRepository, Depends(get_customer_repository)],
) -> MatchingContext:
    """Build the matching context for one template and customer.

    Args:
        request: Template, customer and AI preference
        engine: Relevance engine
        templates: Template metadata repository
        documents: Document metadata repository
        customers: Customer repository

    Returns:
        MatchingContext: Ranked matches and prompt text

    Raises:
        HTTPException: 404 when the template or customer is unknown
    """
    template = await templates.get_by_slug(request.template_slug)
    if template is None:
        raise api_error(
            status.HTTP_404_NOT_FOUND, "TemplateNotFound", f"Template {request.template_slug} not found"
        )
    customer = await customers.get_by_id(request.customer_id)
    if customer is None:
        raise api_error(
            status.HTTP_404_NOT_FOUND, "CustomerNotFound", f"Customer {request.customer_id} not found"
        )

    candidates = await documents.list_for_customer(customer.id)
    return await engine.build_matching_context(
        template,
        candidates,
        workspace_slug=customer.workspace_slug,
        use_ai=request.use_ai,
    )


@router.post(
    "/jobs",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=MatchingJob,
    summary="Start a relevance job",
    description="Score the selected documents against the selected templates in the background.",
    operation_id="create_matching_job",
)
async def create_job(
    request: CreateJobRequest,
    scheduler: Annotated[MatchingJobScheduler, Depends(get_job_scheduler)],
) -> MatchingJob:
    return scheduler.start(
        template_slugs=request.template_slugs,
        customer_ids=request.customer_ids,
        force_recalculate=request.force_recalculate,
        created_by=request.created_by,
    )


@router.get(
    "/jobs",
    response_model=JobListResponse,
    summary="List relevance jobs",
    operation_id="list_matching_jobs",
)
async def list_jobs(
    scheduler: Annotated[MatchingJobScheduler, Depends(get_job_scheduler)],
) -> JobListResponse:
    return JobListResponse(jobs=scheduler.list_jobs())


@router.get(
    "/jobs/{job_id}",
    response_model=MatchingJob,
    responses=_NOT_FOUND,
    summary="Get a relevance job",
    operation_id="get_matching_job",
)
async def get_job(
    job_id: str,
    scheduler: Annotated[MatchingJobScheduler, Depends(get_job_scheduler)],
) -> MatchingJob:
    try:
        return scheduler.get(job_id)
    except JobNotFoundError as e:
        raise api_error(status.HTTP_404_NOT_FOUND, "JobNotFound", e.message) from e


@router.delete(
    "/jobs/{job_id}",
    response_model=JobActionResponse,
    responses={
        400: {"description": "Job already finished", "model": ErrorResponse},
        **_NOT_FOUND,
    },
    summary="Cancel a relevance job",
    operation_id="cancel_matching_job",
)
async def cancel_job(
    job_id: str,
    scheduler: Annotated[MatchingJobScheduler, Depends(get_job_scheduler)],
) -> JobActionResponse:
    try:
        cancelled = scheduler.cancel(job_id)
    except JobNotFoundError as e:
        raise api_error(status.HTTP_404_NOT_FOUND, "JobNotFound", e.message) from e
    if not cancelled:
        raise api_error(status.HTTP_400_BAD_REQUEST, "JobNotCancellable", f"Job {job_id} cannot be cancelled")
    return JobActionResponse(message=f"Cancellation requested for job {job_id}")


@router.delete(
    "/jobs",
    response_model=JobActionResponse,
    summary="Clear relevance jobs",
    description="Forget every job, cancelling the ones still running.",
    operation_id="clear_matching_jobs",
)
async def clear_jobs(
    scheduler: Annotated[MatchingJobScheduler, Depends(get_job_scheduler)],
) -> JobActionResponse:
    removed = scheduler.clear_all()
    return JobActionResponse(message=f"Cleared {removed} jobs", removed_jobs=removed)


@router.post(
    "/recalculate-all",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=MatchingJob,
    summary="Recalculate all relevance scores",
    description="Start a forced job over every template and every document.",
    operation_id="recalculate_all_relevance",
)
async def recalculate_all(
    scheduler: Annotated[MatchingJobScheduler, Depends(get_job_scheduler)],
) -> MatchingJob:
    LOGGER.info("Full relevance recalculation requested")
    return scheduler.start(force_recalculate=True, created_by="recalculate-all")


@router.post(
    "/pin",
    response_model=PinningResult,
    summary="Pin relevant documents",
    description="Pin a customer's documents whose stored relevance to the template clears the threshold.",
    operation_id="pin_relevant_documents",
)
async def pin_documents(
    request: PinRequest,
    pinning: Annotated[PinningController, Depends(get_pinning_controller)],
) -> PinningResult:
    return await pinning.pin_relevant_documents(
        request.workspace_slug,
        request.template_slug,
        request.customer_id,
        min_score=request.min_score,
    )


@router.post(
    "/unpin",
    response_model=UnpinResponse,
    summary="Unpin documents",
    operation_id="unpin_documents",
)
async def unpin_documents(
    request: UnpinRequest,
    pinning: Annotated[PinningController, Depends(get_pinning_controller)],
) -> UnpinResponse:
    failed = await pinning.unpin_documents(request.workspace_slug, request.document_paths)
    unpinned = [path for path in request.document_paths if path not in failed]
    return UnpinResponse(ok=not failed, unpinned=unpinned, failed=failed)
