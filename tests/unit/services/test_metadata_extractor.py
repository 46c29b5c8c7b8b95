"""Tests for AI metadata extraction and its background runner."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from docintel.config import Settings
from docintel.core.ai_client import WorkspaceChatAI
from docintel.core.exceptions import ExtractionFailed
from docintel.core.workspace_client import WorkspaceClient
from docintel.repositories.document_metadata_repository import DocumentMetadataRepository
from docintel.repositories.template_metadata_repository import TemplateMetadataRepository
from docintel.schemas.ingestion import ExternalDocument, ExtractionRequest
from docintel.schemas.notifications import NotificationStatus
from docintel.services.background import BackgroundTasks
from docintel.services.metadata.extractor import MetadataExtractor, analysis_to_metadata, is_usable_analysis
from docintel.services.metadata.runner import ExtractionRunner
from docintel.services.metadata.workspace_index import WorkspaceIndexPublisher
from docintel.services.notification_bus import NotificationBus

ANALYSIS = {
    "documentType": "spreadsheet",
    "purpose": "Quarterly inventory tracking",
    "dataCategories": ["inventory", "financial"],
    "keyTopics": ["products", "warehouses"],
    "hasTables": True,
    "dateRange": "2025-07 to 2025-09",
    "metrics": ["stock on hand"],
    "sheetNames": ["Q3"],
}


@pytest.fixture
def extraction_request(tmp_path) -> ExtractionRequest:
    path = tmp_path / "inventory-q3.xlsx"
    path.write_bytes(b"spreadsheet")
    return ExtractionRequest(
        customer_id=7,
        file_path=path,
        filename="inventory-q3.xlsx",
        workspace_slug="acme",
        document_name="Acme_Aug_2025/inventory-q3.xlsx-1.json",
    )


@pytest.fixture
def workspace() -> AsyncMock:
    client = AsyncMock(spec=WorkspaceClient)
    client.workspace_documents.return_value = [
        ExternalDocument(
            name="inventory-q3.xlsx-1.json",
            qualified_name="Acme_Aug_2025/inventory-q3.xlsx-1.json",
        )
    ]
    return client


class TestAnalysisMapping:
    """Tests for analysis_to_metadata and is_usable_analysis."""

    def test_unknown_keys_go_to_extra_fields(self):
        metadata = analysis_to_metadata(
            {**ANALYSIS, "estimatedPageCount": "about ten", "hasCharts": True, "hasTables": False},
            customer_id=7,
            filename="inventory-q3.xlsx",
        )

        assert metadata.document_type == "spreadsheet"
        assert metadata.key_topics == ["products", "warehouses"]
        assert metadata.estimated_page_count is None
        assert metadata.has_tables is True
        assert metadata.extra_fields == {"metrics": ["stock on hand"], "sheetNames": ["Q3"], "hasCharts": True}
        assert metadata.last_analyzed is not None

    @pytest.mark.parametrize(
        "malformed",
        [
            {"keyTopics": 5},
            {"stakeholders": {"owner": "finance"}},
            {"estimatedPageCount": float("inf")},
            {"estimatedWordCount": [120]},
        ],
    )
    def test_malformed_values_are_dropped(self, malformed):
        metadata = analysis_to_metadata(
            {"documentType": "report", **malformed}, customer_id=7, filename="inventory-q3.xlsx"
        )

        assert metadata.document_type == "report"
        assert metadata.key_topics == []
        assert metadata.stakeholders == []
        assert metadata.estimated_page_count is None
        assert metadata.estimated_word_count is None

    @pytest.mark.parametrize(
        "parsed, usable",
        [
            ({"documentType": "memo"}, True),
            ({"purpose": "Status update"}, True),
            ({"keyTopics": ["x"]}, False),
            ([{"documentType": "memo"}], False),
            (None, False),
        ],
    )
    def test_usable_analysis(self, parsed, usable):
        assert is_usable_analysis(parsed) is usable


class TestMetadataExtractor:
    """Tests for MetadataExtractor.extract."""

    @pytest.mark.asyncio
    async def test_success_stores_relevance_and_notifies(
        self, clock, workspace, extraction_request, sample_template
    ):
        ai = AsyncMock(spec=WorkspaceChatAI)
        ai.complete_json.return_value = ("{...}", dict(ANALYSIS))
        documents = AsyncMock(spec=DocumentMetadataRepository)
        documents.upsert.side_effect = lambda metadata: metadata.model_copy(update={"id": 11})
        templates = AsyncMock(spec=TemplateMetadataRepository)
        templates.list_all.return_value = [sample_template]
        bus = NotificationBus(clock=clock)
        refresh = MagicMock()

        extractor = MetadataExtractor(
            ai, workspace, bus, documents, templates, refresh_index=refresh, sleep=clock.sleep, clock=clock
        )
        saved = await extractor.extract(extraction_request)

        assert saved.id == 11
        assert saved.external_document_path == "Acme_Aug_2025/inventory-q3.xlsx-1.json"
        assert saved.file_size == len(b"spreadsheet")
        [relevance] = saved.template_relevance
        assert relevance.template_slug == "inventory-report"
        assert relevance.score == 10.0

        refresh.assert_called_once_with(7, "acme")
        statuses = [event.status for event in bus.recent(7)]
        assert statuses == [NotificationStatus.COMPLETE, NotificationStatus.PROCESSING]

    @pytest.mark.asyncio
    async def test_exhausted_retries_publish_error(self, clock, workspace, extraction_request):
        ai = AsyncMock(spec=WorkspaceChatAI)
        ai.complete_json.return_value = ("Sorry, I cannot read that file.", None)
        documents = AsyncMock(spec=DocumentMetadataRepository)
        templates = AsyncMock(spec=TemplateMetadataRepository)
        bus = NotificationBus(clock=clock)
        refresh = MagicMock()

        extractor = MetadataExtractor(
            ai, workspace, bus, documents, templates, refresh_index=refresh, sleep=clock.sleep, clock=clock
        )
        with pytest.raises(ExtractionFailed):
            await extractor.extract(extraction_request)

        assert ai.complete_json.await_count == 3
        assert clock.sleeps == [3.0, 3.0]
        documents.upsert.assert_not_awaited()
        refresh.assert_not_called()
        latest = bus.recent(7)[0]
        assert latest.status == NotificationStatus.ERROR
        assert latest.message.startswith("Failed to extract metadata:")

    @pytest.mark.asyncio
    async def test_answer_that_cannot_be_mapped_is_retried(
        self, clock, workspace, extraction_request, monkeypatch
    ):
        mapped = MagicMock(
            side_effect=[
                ValueError("dataCategories: unexpected shape"),
                analysis_to_metadata(dict(ANALYSIS), customer_id=7, filename="inventory-q3.xlsx"),
            ]
        )
        monkeypatch.setattr("docintel.services.metadata.extractor.analysis_to_metadata", mapped)
        ai = AsyncMock(spec=WorkspaceChatAI)
        ai.complete_json.return_value = ("{...}", dict(ANALYSIS))
        documents = AsyncMock(spec=DocumentMetadataRepository)
        documents.upsert.side_effect = lambda metadata: metadata.model_copy(update={"id": 12})
        templates = AsyncMock(spec=TemplateMetadataRepository)
        templates.list_all.return_value = []
        bus = NotificationBus(clock=clock)

        extractor = MetadataExtractor(ai, workspace, bus, documents, templates, sleep=clock.sleep, clock=clock)
        saved = await extractor.extract(extraction_request)

        assert saved.id == 12
        assert ai.complete_json.await_count == 2
        assert clock.sleeps == [3.0]
        assert bus.recent(7)[0].status == NotificationStatus.COMPLETE


class TestExtractionRunner:
    """Tests for ExtractionRunner with a real database session."""

    @pytest.mark.asyncio
    async def test_run_stores_row_and_schedules_index_refresh(
        self, session_factory, workspace, extraction_request
    ):
        ai = AsyncMock(spec=WorkspaceChatAI)
        ai.complete_json.return_value = ("{...}", dict(ANALYSIS))
        publisher = AsyncMock(spec=WorkspaceIndexPublisher)
        publisher.refresh.return_value = True
        background = BackgroundTasks()
        runner = ExtractionRunner(session_factory, ai, workspace, NotificationBus(), background, publisher)

        saved = await runner.run(extraction_request)
        await background.drain()

        assert saved is not None and saved.id is not None
        publisher.refresh.assert_awaited_once()
        customer_id, workspace_slug, listed = publisher.refresh.await_args.args
        assert (customer_id, workspace_slug) == (7, "acme")
        assert [doc.filename for doc in listed] == ["inventory-q3.xlsx"]

    @pytest.mark.asyncio
    async def test_run_returns_none_on_failure(self, session_factory, workspace, extraction_request):
        ai = AsyncMock(spec=WorkspaceChatAI)
        ai.complete_json.return_value = ("", None)
        runner = ExtractionRunner(
            session_factory,
            ai,
            workspace,
            NotificationBus(),
            BackgroundTasks(),
            AsyncMock(spec=WorkspaceIndexPublisher),
            config=Settings(extraction_max_attempts=1, extraction_retry_delay=0),
        )

        assert await runner.run(extraction_request) is None
