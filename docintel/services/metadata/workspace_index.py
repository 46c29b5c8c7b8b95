"""Plain-text index of a customer's analyzed documents, pushed into the workspace."""

from typing import Dict, Sequence

from docintel.core.exceptions import AppError
from docintel.core.workspace_client import WorkspaceClient
from docintel.schemas.metadata import DocumentMetadata
from docintel.utils.logging import get_logger

LOGGER = get_logger(__name__)


def generate_workspace_index(documents: Sequence[DocumentMetadata]) -> str:
    """Render an overview of every analyzed document for AI context."""
    if not documents:
        return "No documents found in workspace."

    lines = [f"WORKSPACE DOCUMENT INDEX ({len(documents)} documents):", ""]
    for index, meta in enumerate(documents, start=1):
        lines.append(f"{index}. {meta.filename}")
        if meta.document_type:
            lines.append(f"   Type: {meta.document_type}")
        if meta.purpose:
            lines.append(f"   Purpose: {meta.purpose}")
        if meta.key_topics:
            lines.append(f"   Topics: {', '.join(meta.key_topics)}")
        if meta.mentioned_systems:
            lines.append(f"   Systems: {', '.join(meta.mentioned_systems)}")
        if meta.meeting_date:
            lines.append(f"   Meeting Date: {meta.meeting_date}")
        if meta.date_range:
            lines.append(f"   Date Range: {meta.date_range}")
        lines.append("")
    return "\n".join(lines)


def index_filename(customer_id: int) -> str:
    return f"workspace-index-customer-{customer_id}.txt"


class WorkspaceIndexPublisher:
    """Uploads the index as a text document and swaps it into the workspace embeddings."""

    def __init__(self, client: WorkspaceClient):
        self.client = client
        # Last embedded index per workspace, replaced on each refresh
        self._published: Dict[str, str] = {}

    async def refresh(self, customer_id: int, workspace_slug: str, documents: Sequence[DocumentMetadata]) -> bool:
        """Publish a fresh index. Failures are logged and reported as False."""
        text = generate_workspace_index(documents)
        try:
            uploaded = await self.client.upload_document(text.encode("utf-8"), index_filename(customer_id))
            previous = self._published.get(workspace_slug)
            deletes = [previous] if previous and previous != uploaded.name else None
            await self.client.update_embeddings(workspace_slug, adds=[uploaded.name], deletes=deletes)
        except AppError as e:
            LOGGER.warning(
                "Workspace index refresh failed",
                extra={"customer_id": customer_id, "workspace": workspace_slug, "error": str(e)},
            )
            return False

        self._published[workspace_slug] = uploaded.name
        LOGGER.info(
            "Refreshed workspace index",
            extra={"customer_id": customer_id, "workspace": workspace_slug, "documents": len(documents)},
        )
        return True
