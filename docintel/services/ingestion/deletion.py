"""Removal of an uploaded file together with its workspace service counterparts."""

from pathlib import Path
from typing import List, Optional

from docintel.core.exceptions import AppError
from docintel.core.workspace_client import WorkspaceClient
from docintel.repositories.document_metadata_repository import DocumentMetadataRepository
from docintel.schemas.ingestion import DeletionOutcome
from docintel.services.correlation_store import CorrelationStore
from docintel.services.external_documents import document_exists, find_docs_by_filename
from docintel.utils.logging import get_logger
from docintel.utils.naming import resolve_inside

LOGGER = get_logger(__name__)


class DocumentDeletionService:
    """Deletes the local file, its metadata row and every external identifier found.

    The correlation sidecar is only removed once every discovered identifier
    is confirmed gone, so a partial cleanup can be retried later.
    """

    def __init__(self, client: WorkspaceClient, metadata_repository: DocumentMetadataRepository):
        self.client = client
        self.metadata_repository = metadata_repository

    async def delete(
        self,
        customer_id: int,
        documents_dir: Path,
        filename: str,
        workspace_slug: Optional[str],
    ) -> DeletionOutcome:
        """Delete one uploaded file.

        Args:
            customer_id: Owning customer
            documents_dir: The customer's documents folder
            filename: Name of the file inside documents_dir
            workspace_slug: Customer workspace, if any

        Returns:
            DeletionOutcome describing what was removed

        Raises:
            ValidationError: If filename escapes documents_dir
        """
        target = resolve_inside(documents_dir, filename)
        outcome = DeletionOutcome()

        if target.is_file():
            target.unlink()
            outcome.removed_local = True

        await self.metadata_repository.delete_by_filename(customer_id, filename)

        store = CorrelationStore(documents_dir)
        try:
            candidates = await self._candidate_names(store, filename, workspace_slug)
            existing = [name for name in candidates if await document_exists(self.client, name)]
        except AppError as e:
            LOGGER.warning(
                "Could not look up workspace documents for deletion",
                extra={"customer_id": customer_id, "file_name": filename, "error": str(e)},
            )
            outcome.documents_warning = f"Workspace documents were not removed: {e}"
            return outcome

        for name in existing:
            try:
                removed = await self._remove(name, workspace_slug)
            except AppError as e:
                LOGGER.warning("Removal check failed", extra={"doc_name": name, "error": str(e)})
                removed = False
            if removed:
                outcome.removed_names.append(name)

        failed = [name for name in existing if name not in outcome.removed_names]
        if failed:
            outcome.documents_warning = f"Could not remove workspace documents: {', '.join(failed)}"
        else:
            store.delete(filename)

        LOGGER.info(
            "Deleted document",
            extra={
                "customer_id": customer_id,
                "file_name": filename,
                "removed_local": outcome.removed_local,
                "removed_names": outcome.removed_names,
            },
        )
        return outcome

    async def _candidate_names(
        self,
        store: CorrelationStore,
        filename: str,
        workspace_slug: Optional[str],
    ) -> List[str]:
        names = store.qualified_names_for(filename)
        if not names:
            names = await find_docs_by_filename(self.client, filename, workspace_slug)
        if workspace_slug:
            for doc in await self.client.workspace_documents(workspace_slug):
                source = (doc.chunk_source or "").lower()
                if doc.title == filename or source.endswith(filename.lower()):
                    names.append(doc.qualified_name)
        return list(dict.fromkeys(name for name in names if name))

    async def _remove(self, name: str, workspace_slug: Optional[str]) -> bool:
        """Remove one identifier, trying qualified and short variants in both orders."""
        variants = list(dict.fromkeys([name, name.rsplit("/", 1)[-1]]))

        await self._unembed(variants, workspace_slug)
        await self._remove_from_library(variants)
        if not await document_exists(self.client, name):
            return True

        # Some service versions only accept removal before un-embedding
        await self._remove_from_library(variants)
        await self._unembed(variants, workspace_slug)
        return not await document_exists(self.client, name)

    async def _unembed(self, variants: List[str], workspace_slug: Optional[str]) -> None:
        if not workspace_slug:
            return
        for variant in variants:
            try:
                await self.client.update_embeddings(workspace_slug, deletes=[variant])
            except AppError as e:
                LOGGER.debug("Un-embed failed", extra={"doc_name": variant, "error": str(e)})

    async def _remove_from_library(self, variants: List[str]) -> None:
        for variant in variants:
            try:
                await self.client.remove_documents([variant])
            except AppError as e:
                LOGGER.debug("Library removal failed", extra={"doc_name": variant, "error": str(e)})
