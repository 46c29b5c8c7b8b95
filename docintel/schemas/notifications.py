"""Notification events published by ingestion and extraction."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class NotificationStatus(str, Enum):
    """Progress states a file passes through."""
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


class Notification(BaseModel):
    """One progress event for a customer file."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    customer_id: int
    filename: str
    status: NotificationStatus
    message: Optional[str] = None
    timestamp: float = Field(..., description="Epoch seconds when the event was published")
    sequence: int = Field(default=0, description="Publication order within the bus, starting at 1")
