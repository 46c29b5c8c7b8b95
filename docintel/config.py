"""Application configuration management."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Settings
    app_name: str = "DocIntel - Document Ingestion & Template Matching"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # API Settings
    api_v1_prefix: str = "/api/v1"
    host: str = "0.0.0.0"
    port: int = 8000

    # Library Storage
    library_root: str = Field(
        default="./data",
        description="Root folder holding customers/{folder}/documents trees"
    )

    # Workspace Service Configuration
    workspace_api_url: str = Field(
        default="http://localhost:3001",
        description="Base URL of the document indexing/embedding service"
    )
    workspace_api_key: str = Field(
        default="",
        description="Bearer API key for the document indexing/embedding service"
    )
    default_upload_folder: str = Field(
        default="custom-documents",
        description="Folder the workspace service places fresh uploads in"
    )

    # Timeout Settings (in seconds)
    http_timeout: int = 60

    # Rate Limiting
    max_retries: int = 3
    retry_delay: int = 2

    # Ingestion Pipeline
    indexing_poll_interval: float = Field(default=2.0, description="Seconds between indexing checks")
    indexing_max_wait: float = Field(default=30.0, description="Cap on the indexing wait")
    move_max_attempts: int = Field(default=2, description="Attempts to organize into the customer folder")
    move_retry_delay: float = Field(default=1.0, description="Backoff between organize attempts")
    verify_poll_interval: float = Field(default=2.0, description="Seconds between existence checks")
    verify_max_wait: float = Field(default=20.0, description="Cap on the existence verification wait")
    embed_max_attempts: int = Field(default=3, description="Attempts to embed into the workspace")
    embed_retry_delay: float = Field(default=3.0, description="Fixed backoff between embed attempts")

    # Metadata Extraction
    extraction_max_attempts: int = Field(default=3, description="AI analysis attempts per document")
    extraction_retry_delay: float = Field(default=3.0, description="Backoff between analysis attempts")
    stored_relevance_on_extract: int = Field(
        default=10,
        description="Template relevance entries stored when a document is analyzed"
    )

    # Notifications
    notification_capacity: int = Field(default=100, description="Ring buffer size")
    notification_dedup_window: float = Field(
        default=2.0,
        description="Seconds within which identical (customer, file, status) events collapse"
    )
    notification_page_size: int = Field(default=20, description="Notifications returned per customer")
    stream_poll_interval: float = Field(default=2.0, description="Seconds between stream polls")
    stream_snapshot_window: float = Field(
        default=5.0,
        description="Age limit of the tracked-file snapshot sent on stream connect"
    )

    # Relevance Matching
    relevance_cache_ttl: float = Field(default=900.0, description="Match cache TTL in seconds")
    relevance_cache_capacity: int = Field(default=100, description="Max cached match results")
    ai_rerank_timeout: float = Field(default=10.0, description="AI re-ranking time budget in seconds")
    ai_rerank_shortlist: int = Field(default=25, description="Documents sent to AI re-ranking")
    relevance_threshold: float = Field(default=7.0, description="Score counted as a match")
    max_stored_relevance: int = Field(
        default=20,
        description="Template relevance entries kept per document by batch jobs"
    )

    # Batch Jobs
    job_batch_size: int = Field(default=10, description="Units of work per batch")
    job_batch_pause: float = Field(default=0.1, description="Pause between batches in seconds")
    job_retention: int = Field(default=50, description="Terminal jobs kept in the registry")

    # Pinning
    pin_min_score: float = Field(default=7.0, description="Minimum relevance to pin a document")

    # Database Settings
    database_url: str = "sqlite+aiosqlite:///./data/docintel.db"
    database_echo: bool = False  # SQL query logging

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parent.parent / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def get_settings() -> Settings:
    """Get application settings instance.

    Returns:
        Settings: Application settings loaded from environment
    """
    return Settings()


# Global settings instance
settings = get_settings()
