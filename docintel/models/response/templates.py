"""Pydantic response models for template endpoints."""

from typing import Optional

from pydantic import BaseModel

from docintel.schemas.metadata import TemplateMetadata


class GenerationTimeResponse(BaseModel):
    """Outcome of recording one generation duration.

    Attributes:
        ok: Always true; unknown templates are not an error
        recorded: Whether statistics were updated
        template: The updated template, when recorded
    """

    ok: bool = True
    recorded: bool = False
    template: Optional[TemplateMetadata] = None
