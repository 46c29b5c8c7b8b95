"""Pydantic request models for template matching endpoints."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MatchTemplateRequest(BaseModel):
    """Request model for ranking a customer's documents against one template.

    Attributes:
        template_slug: Template to match
        customer_id: Owner of the candidate documents
        use_ai: Allow AI re-ranking of the top candidates
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [{"templateSlug": "quarterly-report", "customerId": 7, "useAI": True}]
        },
    )

    template_slug: str = Field(..., min_length=1, description="Template identifier")
    customer_id: int = Field(..., gt=0, description="Customer whose documents are ranked")
    use_ai: bool = Field(default=True, alias="useAI", description="Attempt AI re-ranking")


class CreateJobRequest(BaseModel):
    """Request model for starting a batch relevance job."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    template_slugs: Optional[List[str]] = Field(
        default=None,
        description="Templates to score; all templates when omitted",
    )
    customer_ids: Optional[List[int]] = Field(
        default=None,
        description="Customers whose documents are scored; everyone when omitted",
    )
    force_recalculate: bool = Field(
        default=False,
        description="Recompute pairs that already have a stored score",
    )
    created_by: Optional[str] = Field(default=None, description="Free-form requester label")


class PinRequest(BaseModel):
    """Request model for pinning the documents relevant to a template."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    workspace_slug: str = Field(..., min_length=1)
    template_slug: str = Field(..., min_length=1)
    customer_id: int = Field(..., gt=0)
    min_score: Optional[float] = Field(default=None, ge=0, le=10)


class UnpinRequest(BaseModel):
    """Request model for unpinning documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    workspace_slug: str = Field(..., min_length=1)
    document_paths: List[str] = Field(default_factory=list)
