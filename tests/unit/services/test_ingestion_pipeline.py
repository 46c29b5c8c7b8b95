"""Tests for the ingestion pipeline."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from docintel.core.exceptions import APIClientError
from docintel.core.workspace_client import WorkspaceClient
from docintel.schemas.ingestion import ExternalDocument, IngestionRequest, UploadedDocument
from docintel.schemas.notifications import NotificationStatus
from docintel.services.correlation_store import CorrelationStore
from docintel.services.external_documents import matches_upload
from docintel.services.ingestion.pipeline import IngestionPipeline
from docintel.services.notification_bus import NotificationBus

UPLOADED_NAME = "custom-documents/invoice.xlsx-abc.json"
ORGANIZED_NAME = "Acme_Aug_2025/invoice.xlsx-abc.json"


def listed(qualified_name: str) -> ExternalDocument:
    return ExternalDocument(
        name=qualified_name.rsplit("/", 1)[-1],
        qualified_name=qualified_name,
        title="invoice.xlsx",
    )


def make_workspace(move_error: Exception = None) -> AsyncMock:
    """Workspace mock whose listing follows successful moves."""
    state = {"name": UPLOADED_NAME}
    client = AsyncMock(spec=WorkspaceClient)
    client.create_folder.return_value = {"success": True}
    client.upload_document.return_value = UploadedDocument(name=UPLOADED_NAME)

    async def list_documents():
        return [listed(state["name"])]

    async def move_document(source, target):
        if move_error is not None:
            raise move_error
        state["name"] = target
        return True

    client.list_documents.side_effect = list_documents
    client.move_document.side_effect = move_document
    client.get_document.return_value = {"document": {"id": 42}}
    client.update_embeddings.return_value = {"workspace": {"slug": "acme"}}
    return client


@pytest.fixture
def stored_file(tmp_path):
    path = tmp_path / "invoice.xlsx"
    path.write_bytes(b"PK\x03\x04 spreadsheet bytes")
    return path


@pytest.fixture
def ingestion_request(stored_file) -> IngestionRequest:
    return IngestionRequest(
        customer_id=7,
        customer_name="Acme",
        customer_created_at=datetime(2025, 8, 1),
        workspace_slug="acme",
        file_path=stored_file,
        filename="invoice.xlsx",
    )


class TestIngestionPipeline:
    """Tests for IngestionPipeline.ingest."""

    @pytest.mark.asyncio
    async def test_successful_ingestion(self, clock, ingestion_request, stored_file):
        """Upload, organize and embed succeed; extraction is handed off."""
        client = make_workspace()
        bus = NotificationBus(clock=clock)
        launch = MagicMock()
        pipeline = IngestionPipeline(client, bus, launch_extraction=launch, sleep=clock.sleep, clock=clock)

        outcome = await pipeline.ingest(ingestion_request)

        assert outcome.registered is True
        assert outcome.warnings == []
        assert outcome.document_names == [ORGANIZED_NAME]
        client.create_folder.assert_awaited_once_with("Acme_Aug_2025")
        client.move_document.assert_awaited_once_with(UPLOADED_NAME, ORGANIZED_NAME)
        client.update_embeddings.assert_awaited_once_with("acme", adds=[ORGANIZED_NAME])

        entry = CorrelationStore(stored_file.parent).read("invoice.xlsx")
        assert entry.external_document_name == ORGANIZED_NAME
        assert entry.external_document_id == "42"

        launch.assert_called_once()
        extraction = launch.call_args.args[0]
        assert extraction.document_name == ORGANIZED_NAME
        assert extraction.workspace_slug == "acme"
        assert bus.recent(7) == []

    @pytest.mark.asyncio
    async def test_organize_failure_still_embeds_original_name(self, clock, ingestion_request):
        """A flaky move is abandoned and the unorganized identifier is embedded."""
        client = make_workspace(move_error=APIClientError("rename failed", status_code=500))
        bus = NotificationBus(clock=clock)
        pipeline = IngestionPipeline(client, bus, launch_extraction=MagicMock(), sleep=clock.sleep, clock=clock)

        outcome = await pipeline.ingest(ingestion_request)

        assert outcome.registered is True
        assert client.move_document.await_count == 2
        client.update_embeddings.assert_awaited_once_with("acme", adds=[UPLOADED_NAME])
        assert any("Could not organize" in warning for warning in outcome.warnings)
        assert bus.recent(7) == []

    @pytest.mark.asyncio
    async def test_upload_failure_publishes_error(self, clock, ingestion_request):
        client = make_workspace()
        client.upload_document.side_effect = APIClientError("service down", status_code=502)
        bus = NotificationBus(clock=clock)
        launch = MagicMock()
        pipeline = IngestionPipeline(client, bus, launch_extraction=launch, sleep=clock.sleep, clock=clock)

        outcome = await pipeline.ingest(ingestion_request)

        assert outcome.registered is False
        launch.assert_not_called()
        client.update_embeddings.assert_not_awaited()
        [event] = bus.recent(7)
        assert event.status == NotificationStatus.ERROR
        assert "service down" in event.message

    @pytest.mark.asyncio
    async def test_embed_failure_still_launches_extraction(self, clock, ingestion_request):
        """Unconfirmed embedding is a warning; extraction still runs on the best identifier."""
        client = make_workspace()
        client.update_embeddings.return_value = {"message": "Embedding failed: vector store offline"}
        bus = NotificationBus(clock=clock)
        launch = MagicMock()
        pipeline = IngestionPipeline(client, bus, launch_extraction=launch, sleep=clock.sleep, clock=clock)

        outcome = await pipeline.ingest(ingestion_request)

        assert outcome.registered is False
        assert client.update_embeddings.await_count == 3
        assert any("Embedding into workspace acme not confirmed" in warning for warning in outcome.warnings)
        launch.assert_called_once()
        assert launch.call_args.args[0].document_name == ORGANIZED_NAME
        assert bus.recent(7) == []

    @pytest.mark.asyncio
    async def test_indexing_timeout_is_a_warning(self, clock, ingestion_request):
        """The pipeline proceeds when the listing never shows the upload."""
        client = make_workspace()
        client.list_documents.side_effect = None
        client.list_documents.return_value = []
        pipeline = IngestionPipeline(
            client, NotificationBus(clock=clock), launch_extraction=MagicMock(), sleep=clock.sleep, clock=clock
        )

        outcome = await pipeline.ingest(ingestion_request)

        assert outcome.registered is True
        assert any("Indexing not confirmed" in warning for warning in outcome.warnings)
        # Verify-exists falls back to the organize result
        client.update_embeddings.assert_awaited_once_with("acme", adds=[ORGANIZED_NAME])

    @pytest.mark.asyncio
    async def test_multi_sheet_upload_embeds_every_sheet(self, clock, ingestion_request, stored_file):
        """Each sheet of a spreadsheet is a separate document; all of them are embedded and recorded."""
        second_sheet = "Acme_Aug_2025/invoice.xlsx-abc-Sheet2.json"
        client = make_workspace()
        plain_listing = client.list_documents.side_effect

        async def list_documents():
            documents = await plain_listing()
            if documents[0].qualified_name != ORGANIZED_NAME:
                return documents
            return [
                listed(second_sheet),
                *documents,
                listed("Other_Jan_2024/invoice.xlsx-zzz.json"),
                listed("Acme_Aug_2025/old-invoice.xlsx-1.json"),
            ]

        client.list_documents.side_effect = list_documents
        pipeline = IngestionPipeline(
            client, NotificationBus(clock=clock), launch_extraction=MagicMock(), sleep=clock.sleep, clock=clock
        )

        outcome = await pipeline.ingest(ingestion_request)

        assert outcome.document_names == [ORGANIZED_NAME, second_sheet]
        client.update_embeddings.assert_awaited_once_with("acme", adds=[ORGANIZED_NAME, second_sheet])
        entry = CorrelationStore(stored_file.parent).read("invoice.xlsx")
        assert entry.external_document_name == ORGANIZED_NAME
        assert entry.external_document_names == [ORGANIZED_NAME, second_sheet]


class TestMatchesUpload:
    """Tests for matching listing entries to an upload."""

    @pytest.mark.parametrize(
        "qualified_name, expected",
        [
            ("Acme_Aug_2025/report.pdf-1a2b.json", True),
            ("custom-documents/report.pdf-1a2b.json", True),
            ("Acme_Aug_2025/report/sheet-Summary.json", True),
            ("Other_Jan_2024/report.pdf-9f9f.json", False),
            ("custom-documents/quarterly-report.pdf-1a2b.json", False),
            ("Acme_Aug_2025/report-final.pdf-3c4d.json", False),
        ],
    )
    def test_scoped_to_upload_folders(self, qualified_name, expected):
        doc = ExternalDocument(name=qualified_name.rsplit("/", 1)[-1], qualified_name=qualified_name)

        assert matches_upload(doc, "report.pdf", ["Acme_Aug_2025", "custom-documents"]) is expected
