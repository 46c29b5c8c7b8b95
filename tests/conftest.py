"""Pytest configuration and shared fixtures."""

from typing import AsyncGenerator, List

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from docintel.database import Base
from docintel.main import app
from docintel.schemas.metadata import DocumentMetadata, TemplateMetadata


class FakeClock:
    """Deterministic clock whose sleep advances time instead of waiting."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client.

    Returns:
        TestClient: FastAPI test client instance
    """
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """In-memory SQLite database with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def sample_template() -> TemplateMetadata:
    """Inventory report template needing products, quantities and dates."""
    return TemplateMetadata(
        template_slug="inventory-report",
        template_name="Inventory Report",
        template_type="spreadsheet",
        purpose="Monthly inventory tracking report",
        output_format="xlsx",
        required_data_types=["inventory", "financial"],
        expected_entities=["products", "warehouses"],
        compatible_document_types=["spreadsheet", "report"],
        has_tables=True,
        requires_aggregation=True,
        requires_time_series=True,
    )


@pytest.fixture
def sample_document() -> DocumentMetadata:
    """Spreadsheet covering everything the sample template needs."""
    return DocumentMetadata(
        id=1,
        customer_id=7,
        filename="inventory-q3.xlsx",
        document_type="spreadsheet",
        purpose="Quarterly inventory tracking",
        data_categories=["inventory", "financial"],
        key_topics=["products", "warehouses"],
        has_tables=True,
        date_range="2025-07 to 2025-09",
        extra_fields={"metrics": ["stock on hand", "reorder level"]},
    )
