"""Tests for the correlation sidecar store."""

import json

from docintel.schemas.ingestion import CorrelationEntry
from docintel.services.correlation_store import CorrelationStore


class TestCorrelationStore:
    """Tests for CorrelationStore."""

    def test_write_then_read(self, tmp_path):
        store = CorrelationStore(tmp_path)
        path = store.write(
            CorrelationEntry(
                local_filename="invoice.xlsx",
                external_document_name="Acme_Aug_2025/invoice-sheet-1.json",
                external_document_names=[
                    "Acme_Aug_2025/invoice-sheet-1.json",
                    "Acme_Aug_2025/invoice-sheet-2.json",
                ],
                external_document_id="42",
                workspace_id="acme",
            )
        )

        assert path.name == "invoice.xlsx.allm.json"
        record = json.loads(path.read_text(encoding="utf-8"))
        assert record["docName"] == "Acme_Aug_2025/invoice-sheet-1.json"
        assert record["workspaceSlug"] == "acme"

        entry = store.read("invoice.xlsx")
        assert entry.external_document_id == "42"
        assert store.qualified_names_for("invoice.xlsx") == [
            "Acme_Aug_2025/invoice-sheet-1.json",
            "Acme_Aug_2025/invoice-sheet-2.json",
        ]

    def test_missing_or_corrupt_sidecar_reads_as_none(self, tmp_path):
        store = CorrelationStore(tmp_path)
        assert store.read("absent.pdf") is None

        store.sidecar_path("broken.pdf").write_text("{not json", encoding="utf-8")
        assert store.read("broken.pdf") is None
        assert store.qualified_names_for("broken.pdf") == []

    def test_delete(self, tmp_path):
        store = CorrelationStore(tmp_path)
        store.write(
            CorrelationEntry(local_filename="a.txt", external_document_name="x/a.json", workspace_id="w")
        )

        assert store.delete("a.txt") is True
        assert store.delete("a.txt") is False
