"""Database module for SQLAlchemy models and session management."""

from docintel.database.base import Base, async_session_maker, engine, get_async_session
from docintel.database.models import Customer, DocumentMetadataRecord, TemplateMetadataRecord
from docintel.database.client import DatabaseClient, close_database, db_client, init_database

__all__ = [
    "Base",
    "engine",
    "async_session_maker",
    "get_async_session",
    "DatabaseClient",
    "db_client",
    "init_database",
    "close_database",
    "Customer",
    "DocumentMetadataRecord",
    "TemplateMetadataRecord",
]
