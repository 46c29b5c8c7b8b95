"""Template analysis and generation statistics endpoints."""

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from docintel.api.errors import api_error
from docintel.core.exceptions import AppError, ValidationError
from docintel.dependencies import (
    get_library_storage,
    get_template_characterizer,
    get_template_metadata_repository,
)
from docintel.models.request.uploads import GenerationTimeRequest
from docintel.models.response.response import ErrorResponse
from docintel.models.response.templates import GenerationTimeResponse
from docintel.repositories.template_metadata_repository import TemplateMetadataRepository
from docintel.schemas.metadata import TemplateMetadata
from docintel.services.library_storage import LibraryStorage
from docintel.services.metadata.template_characterizer import TemplateCharacterizer

router = APIRouter()


@router.post(
    "/{template_slug}/analyze",
    status_code=status.HTTP_201_CREATED,
    response_model=TemplateMetadata,
    responses={400: {"description": "Invalid template file", "model": ErrorResponse}},
    summary="Analyze a template",
    description="Store a template file and record what data it needs from source documents.",
    operation_id="analyze_template",
)
async def analyze_template(
    template_slug: str,
    file: Annotated[UploadFile, File(description="Template file")],
    workspace_slug: Annotated[str, Form(description="Workspace whose chat analyzes the template")],
    storage: Annotated[LibraryStorage, Depends(get_library_storage)],
    characterizer: Annotated[TemplateCharacterizer, Depends(get_template_characterizer)],
    template_name: Annotated[Optional[str], Form(description="Display name")] = None,
) -> TemplateMetadata:
    """Store and characterize a template.

    Args:
        template_slug: Unique template identifier
        file: Template upload
        workspace_slug: Workspace used for the AI analysis
        storage: Library storage
        characterizer: Template characterizer
        template_name: Display name, defaults to the slug

    Returns:
        TemplateMetadata: The stored requirements
    """
    try:
        path, _ = await storage.store(storage.template_dir(template_slug), file)
    except ValidationError as e:
        raise api_error(status.HTTP_400_BAD_REQUEST, "ValidationError", e.message) from e
    except AppError as e:
        raise api_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "StorageError", "Failed to store template", str(e)
        ) from e

    return await characterizer.characterize(path, template_slug, template_name or template_slug, workspace_slug)


@router.get(
    "/metadata",
    response_model=List[TemplateMetadata],
    summary="List template metadata",
    operation_id="list_template_metadata",
)
async def list_template_metadata(
    templates: Annotated[TemplateMetadataRepository, Depends(get_template_metadata_repository)],
) -> List[TemplateMetadata]:
    return await templates.list_all()


@router.get(
    "/{template_slug}/metadata",
    response_model=TemplateMetadata,
    responses={404: {"description": "Template not found", "model": ErrorResponse}},
    summary="Get template metadata",
    operation_id="get_template_metadata",
)
async def get_template_metadata(
    template_slug: str,
    templates: Annotated[TemplateMetadataRepository, Depends(get_template_metadata_repository)],
) -> TemplateMetadata:
    template = await templates.get_by_slug(template_slug)
    if template is None:
        raise api_error(status.HTTP_404_NOT_FOUND, "TemplateNotFound", f"Template {template_slug} not found")
    return template


@router.post(
    "/{template_slug}/generation-time",
    response_model=GenerationTimeResponse,
    summary="Record a generation duration",
    description="Add one duration to the template's rolling statistics. Unknown templates are ignored.",
    operation_id="record_template_generation_time",
)
async def record_generation_time(
    template_slug: str,
    request: GenerationTimeRequest,
    characterizer: Annotated[TemplateCharacterizer, Depends(get_template_characterizer)],
) -> GenerationTimeResponse:
    template = await characterizer.record_generation_time(template_slug, request.seconds)
    return GenerationTimeResponse(recorded=template is not None, template=template)
