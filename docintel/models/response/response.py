from typing import Optional

from pydantic import BaseModel, Field


class HealthCheckResponse(BaseModel):
    """Health check response model.

    Attributes:
        status: Service status
        version: Application version
        service: Service name
    """

    status: str = Field(
        default="healthy",
        description="Service health status",
        examples=["healthy", "degraded"],
    )
    version: str = Field(
        ...,
        description="Application version",
        examples=["0.1.0"],
    )
    service: str = Field(
        ...,
        description="Service name",
        examples=["DocIntel - Document Ingestion & Template Matching"],
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "status": "healthy",
                    "version": "0.1.0",
                    "service": "DocIntel - Document Ingestion & Template Matching",
                }
            ]
        }
    }


class ErrorResponse(BaseModel):
    """Error body carried in ``HTTPException.detail``."""

    error: str = Field(..., description="Error class", examples=["ValidationError"])
    message: str = Field(..., description="Human-readable message")
    detail: Optional[str] = Field(default=None, description="Underlying error text")
