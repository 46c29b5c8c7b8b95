"""Pydantic request models for upload and template endpoints."""

from pydantic import BaseModel, Field


class MetadataExtractRequest(BaseModel):
    """Request model for manually triggering metadata extraction.

    Attributes:
        filename: Name of a file already stored in the customer's library
    """

    filename: str = Field(
        default="",
        description="Stored file to analyze",
        examples=["invoice.xlsx"],
    )


class GenerationTimeRequest(BaseModel):
    """Request model for recording how long one generation took."""

    seconds: float = Field(..., ge=0, description="Generation duration in seconds", examples=[8.4])
