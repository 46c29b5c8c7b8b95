"""Tests for document deletion."""

from unittest.mock import AsyncMock

import pytest

from docintel.core.exceptions import APIClientError, ValidationError
from docintel.core.workspace_client import WorkspaceClient
from docintel.repositories.document_metadata_repository import DocumentMetadataRepository
from docintel.schemas.ingestion import CorrelationEntry, ExternalDocument
from docintel.services.correlation_store import CorrelationStore
from docintel.services.ingestion.deletion import DocumentDeletionService


def make_workspace(existing, removable=True) -> AsyncMock:
    """Workspace mock backed by a set of known qualified names."""
    client = AsyncMock(spec=WorkspaceClient)

    async def get_document(name):
        if name in existing:
            return {"document": {"name": name}}
        raise APIClientError("Not found", status_code=404)

    async def remove_documents(names):
        if removable:
            existing.difference_update(names)
        return {"success": True}

    client.get_document.side_effect = get_document
    client.remove_documents.side_effect = remove_documents
    client.update_embeddings.return_value = {"workspace": {}}
    client.workspace_documents.return_value = []
    client.list_documents.return_value = []
    return client


@pytest.fixture
def documents_dir(tmp_path):
    path = tmp_path / "documents"
    path.mkdir()
    (path / "a.txt").write_text("hello", encoding="utf-8")
    CorrelationStore(path).write(
        CorrelationEntry(local_filename="a.txt", external_document_name="Acme/a.txt-1.json", workspace_id="acme")
    )
    return path


@pytest.fixture
def metadata_repository():
    return AsyncMock(spec=DocumentMetadataRepository)


class TestDocumentDeletion:
    """Tests for DocumentDeletionService.delete."""

    @pytest.mark.asyncio
    async def test_removes_everything_and_sidecar(self, documents_dir, metadata_repository):
        existing = {"Acme/a.txt-1.json"}
        client = make_workspace(existing)
        service = DocumentDeletionService(client, metadata_repository)

        outcome = await service.delete(7, documents_dir, "a.txt", "acme")

        assert outcome.removed_local is True
        assert outcome.removed_names == ["Acme/a.txt-1.json"]
        assert outcome.documents_warning is None
        assert not (documents_dir / "a.txt").exists()
        assert CorrelationStore(documents_dir).read("a.txt") is None
        metadata_repository.delete_by_filename.assert_awaited_once_with(7, "a.txt")
        client.update_embeddings.assert_any_await("acme", deletes=["Acme/a.txt-1.json"])

    @pytest.mark.asyncio
    async def test_unremovable_document_keeps_sidecar(self, documents_dir, metadata_repository):
        """Partial cleanup reports a warning and leaves the sidecar for a retry."""
        client = make_workspace({"Acme/a.txt-1.json"}, removable=False)
        service = DocumentDeletionService(client, metadata_repository)

        outcome = await service.delete(7, documents_dir, "a.txt", "acme")

        assert outcome.removed_local is True
        assert outcome.removed_names == []
        assert "Acme/a.txt-1.json" in outcome.documents_warning
        assert CorrelationStore(documents_dir).read("a.txt") is not None

    @pytest.mark.asyncio
    async def test_falls_back_to_listing_without_sidecar(self, tmp_path, metadata_repository):
        existing = {"custom-documents/b.pdf-9.json"}
        client = make_workspace(existing)
        client.list_documents.return_value = [
            ExternalDocument(name="b.pdf-9.json", qualified_name="custom-documents/b.pdf-9.json", title="b.pdf")
        ]
        service = DocumentDeletionService(client, metadata_repository)

        outcome = await service.delete(7, tmp_path, "b.pdf", None)

        assert outcome.removed_local is False
        assert outcome.removed_names == ["custom-documents/b.pdf-9.json"]
        client.update_embeddings.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lookup_failure_is_a_warning(self, documents_dir, metadata_repository):
        client = make_workspace(set())
        client.workspace_documents.side_effect = APIClientError("service down", status_code=503)
        service = DocumentDeletionService(client, metadata_repository)

        outcome = await service.delete(7, documents_dir, "a.txt", "acme")

        assert outcome.removed_local is True
        assert "service down" in outcome.documents_warning

    @pytest.mark.asyncio
    async def test_rejects_traversal(self, documents_dir, metadata_repository):
        service = DocumentDeletionService(make_workspace(set()), metadata_repository)

        with pytest.raises(ValidationError):
            await service.delete(7, documents_dir, "../outside.txt", "acme")
        metadata_repository.delete_by_filename.assert_not_awaited()
