"""Database lifecycle: connectivity checks, schema creation and teardown."""

from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine

from docintel.database.base import Base, engine
from docintel.utils.logging import get_logger

# Register models on Base.metadata before create_all
from docintel.database import models  # noqa: F401

LOGGER = get_logger(__name__)


class DatabaseClient:
    """Async database client with connection and schema management."""

    def __init__(self, engine: AsyncEngine):
        """Initialize database client.

        Args:
            engine: SQLAlchemy async engine
        """
        self.engine = engine
        self._connected = False

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def ensure_storage_dir(self) -> None:
        """Create the parent folder of a file-backed SQLite database."""
        url = make_url(str(self.engine.url))
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            Path(url.database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> bool:
        """Test database connection."""
        try:
            self.ensure_storage_dir()
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            self._connected = True
            LOGGER.info("Database connection successful", extra={"dialect": self.dialect})
            return True
        except Exception:
            self._connected = False
            LOGGER.error("Database connection failed", exc_info=True)
            raise

    async def disconnect(self) -> None:
        """Dispose of the connection pool."""
        await self.engine.dispose()
        self._connected = False
        LOGGER.info("Database connection closed")

    async def create_tables(self) -> None:
        """Create missing tables without touching existing ones."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            LOGGER.info("Database tables created/verified successfully")
        except Exception as e:
            LOGGER.error("Failed to create database tables", exc_info=True, extra={"error": str(e)})
            raise

    async def drop_tables(self) -> None:
        """Drop all tables. Deletes every stored record."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.drop_all)
            LOGGER.warning("All database tables dropped")
        except Exception as e:
            LOGGER.error("Failed to drop database tables", exc_info=True, extra={"error": str(e)})
            raise

    async def auto_migrate(self, drop_existing: bool = False) -> None:
        """Bring the schema up to date with the models.

        Args:
            drop_existing: Drop every table first (data loss)
        """
        LOGGER.info("Starting auto-migration", extra={"drop_existing": drop_existing})
        if drop_existing:
            await self.drop_tables()
        await self.create_tables()
        LOGGER.info("Auto-migration completed successfully")

    async def health_check(self) -> dict:
        """Check database health."""
        try:
            async with self.engine.connect() as conn:
                value = await conn.scalar(text("SELECT 1"))
            self._connected = True
            return {
                "status": "healthy",
                "connected": True,
                "database": self.dialect,
                "latency_test": "passed" if value == 1 else "failed",
            }
        except Exception as e:
            self._connected = False
            LOGGER.error("Database health check failed", extra={"error": str(e)})
            return {"status": "unhealthy", "connected": False, "error": str(e)}

    @property
    def is_connected(self) -> bool:
        return self._connected


# Global database client instance
db_client = DatabaseClient(engine)


async def init_database(auto_migrate: bool = True, drop_existing: bool = False) -> None:
    """Connect and optionally migrate the schema.

    Args:
        auto_migrate: Whether to create missing tables on startup
        drop_existing: Whether to drop existing tables first (data loss)
    """
    await db_client.connect()
    if auto_migrate:
        await db_client.auto_migrate(drop_existing=drop_existing)
    LOGGER.info("Database initialization completed")


async def close_database() -> None:
    """Close database connection."""
    try:
        await db_client.disconnect()
    except Exception as e:
        LOGGER.error("Error closing database", exc_info=True, extra={"error": str(e)})
