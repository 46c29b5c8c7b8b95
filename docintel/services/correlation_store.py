"""Sidecar records linking local files to workspace service identifiers."""

import json
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from docintel.schemas.ingestion import CorrelationEntry
from docintel.utils.logging import get_logger

LOGGER = get_logger(__name__)

SIDECAR_SUFFIX = ".allm.json"


class CorrelationStore:
    """Reads and writes ``<file>.allm.json`` next to each uploaded file.

    One record per file, so concurrent ingestions of different files never
    touch the same sidecar.
    """

    def __init__(self, documents_dir: Path):
        self.documents_dir = Path(documents_dir)

    def sidecar_path(self, filename: str) -> Path:
        return self.documents_dir / f"{filename}{SIDECAR_SUFFIX}"

    def write(self, entry: CorrelationEntry) -> Path:
        """Persist an entry, replacing any previous one for the same file."""
        path = self.sidecar_path(entry.local_filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        record = {
            "docName": entry.external_document_name,
            "docNames": entry.all_names,
            "docId": entry.external_document_id,
            "workspaceSlug": entry.workspace_id,
            "uploadedAt": entry.uploaded_at.isoformat(),
        }
        path.write_text(json.dumps(record, indent=2), encoding="utf-8")
        LOGGER.info(
            "Wrote correlation entry",
            extra={"file_name": entry.local_filename, "doc_name": entry.external_document_name},
        )
        return path

    def read(self, filename: str) -> Optional[CorrelationEntry]:
        """Load the entry for a file; missing or unreadable sidecars yield None."""
        path = self.sidecar_path(filename)
        if not path.exists():
            return None
        try:
            record = json.loads(path.read_text(encoding="utf-8"))
            return CorrelationEntry(
                local_filename=filename,
                external_document_name=str(record.get("docName") or ""),
                external_document_names=[str(name) for name in record.get("docNames") or []],
                external_document_id=None if record.get("docId") is None else str(record.get("docId")),
                workspace_id=str(record.get("workspaceSlug") or ""),
                uploaded_at=record.get("uploadedAt") or datetime.now().isoformat(),
            )
        except (OSError, json.JSONDecodeError, PydanticValidationError, AttributeError) as e:
            LOGGER.warning(
                "Ignoring unreadable correlation entry",
                extra={"path": str(path), "error": str(e)},
            )
            return None

    def qualified_names_for(self, filename: str) -> List[str]:
        """Every workspace identifier recorded for a file."""
        entry = self.read(filename)
        return entry.all_names if entry else []

    def delete(self, filename: str) -> bool:
        path = self.sidecar_path(filename)
        if not path.exists():
            return False
        path.unlink()
        return True
