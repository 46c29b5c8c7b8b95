"""Tests for temporary document pinning."""

from unittest.mock import AsyncMock

import pytest

from docintel.core.exceptions import APIClientError
from docintel.core.workspace_client import WorkspaceClient
from docintel.repositories.document_metadata_repository import DocumentMetadataRepository
from docintel.schemas.metadata import DocumentMetadata
from docintel.services.pinning import PinningController


def scored(filename: str, score: float, path: str = None) -> DocumentMetadata:
    return DocumentMetadata(
        customer_id=7,
        filename=filename,
        external_document_path=path,
        extra_fields={"templateRelevance": [{"template_slug": "inventory-report", "score": score}]},
    )


@pytest.fixture
def documents() -> AsyncMock:
    repository = AsyncMock(spec=DocumentMetadataRepository)
    repository.list_for_customer.return_value = [
        scored("low.txt", 3.0),
        scored("mid.xlsx", 7.5, path="Acme/mid.xlsx-1.json"),
        scored("top.docx", 9.0, path="Acme/top.docx-1.json"),
        DocumentMetadata(customer_id=7, filename="unscored.pdf"),
    ]
    return repository


@pytest.fixture
def pins() -> dict:
    return {}


@pytest.fixture
def workspace(pins) -> AsyncMock:
    """Client mock recording the pin state of each path."""
    client = AsyncMock(spec=WorkspaceClient)

    async def update_pin(workspace_slug, doc_path, pin_status):
        pins[doc_path] = pin_status
        return {}

    client.update_pin.side_effect = update_pin
    return client


class TestPinRelevantDocuments:
    """Tests for pin_relevant_documents."""

    @pytest.mark.asyncio
    async def test_pins_documents_above_threshold(self, workspace, documents, pins):
        result = await PinningController(workspace, documents).pin_relevant_documents("acme", "inventory-report", 7)

        assert result.pinned_documents == ["Acme/top.docx-1.json", "Acme/mid.xlsx-1.json"]
        assert result.total_relevant_docs == 2
        assert result.highest_score == 9.0
        assert result.lowest_pinned_score == 7.5
        assert pins == {"Acme/top.docx-1.json": True, "Acme/mid.xlsx-1.json": True}

    @pytest.mark.asyncio
    async def test_threshold_override_and_filename_fallback(self, workspace, documents):
        result = await PinningController(workspace, documents).pin_relevant_documents(
            "acme", "inventory-report", 7, min_score=1.0
        )

        assert "low.txt" in result.pinned_documents
        assert result.model_dump(by_alias=True)["totalRelevantDocs"] == 3

    @pytest.mark.asyncio
    async def test_failed_pin_is_skipped(self, workspace, documents, pins):
        async def flaky_pin(workspace_slug, doc_path, pin_status):
            if doc_path.startswith("Acme/top"):
                raise APIClientError("pin rejected", status_code=500)
            pins[doc_path] = pin_status

        workspace.update_pin.side_effect = flaky_pin

        result = await PinningController(workspace, documents).pin_relevant_documents("acme", "inventory-report", 7)

        assert result.pinned_documents == ["Acme/mid.xlsx-1.json"]
        assert result.total_relevant_docs == 2


class TestWithPinning:
    """Tests for with_pinning."""

    @pytest.mark.asyncio
    async def test_unpins_after_success(self, workspace, documents, pins):
        async def generate(result):
            assert all(pins[path] for path in result.pinned_documents)
            return "generated"

        output = await PinningController(workspace, documents).with_pinning("acme", "inventory-report", 7, generate)

        assert output == "generated"
        assert not any(pins.values())

    @pytest.mark.asyncio
    async def test_unpins_when_operation_raises(self, workspace, documents, pins):
        async def explode(result):
            raise RuntimeError("generation crashed")

        with pytest.raises(RuntimeError, match="generation crashed"):
            await PinningController(workspace, documents).with_pinning("acme", "inventory-report", 7, explode)

        assert pins
        assert not any(pins.values())

    @pytest.mark.asyncio
    async def test_unpin_failure_does_not_mask_error(self, workspace, documents, pins):
        async def pin_then_fail_unpin(workspace_slug, doc_path, pin_status):
            if not pin_status:
                raise APIClientError("unpin rejected", status_code=500)
            pins[doc_path] = pin_status

        workspace.update_pin.side_effect = pin_then_fail_unpin

        async def explode(result):
            raise ValueError("bad template")

        with pytest.raises(ValueError, match="bad template"):
            await PinningController(workspace, documents).with_pinning("acme", "inventory-report", 7, explode)

    @pytest.mark.asyncio
    async def test_unpin_reports_failures(self, workspace, documents):
        async def reject(workspace_slug, doc_path, pin_status):
            if doc_path == "b.json":
                raise APIClientError("unpin rejected", status_code=500)

        workspace.update_pin.side_effect = reject

        failed = await PinningController(workspace, documents).unpin_documents("acme", ["a.json", "b.json"])

        assert failed == ["b.json"]
