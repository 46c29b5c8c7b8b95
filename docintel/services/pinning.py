"""
Temporary document pinning around a generation run.

Relevant documents are pinned in the workspace so its chat favours them,
the caller's operation runs, and every pin is removed again whether the
operation succeeded or raised.
"""

from typing import Awaitable, Callable, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from docintel.core.exceptions import AppError
from docintel.core.workspace_client import WorkspaceClient
from docintel.repositories.document_metadata_repository import DocumentMetadataRepository
from docintel.utils.logging import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")


class PinningResult(BaseModel):
    """Which documents were pinned for a template."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    pinned_documents: List[str] = Field(default_factory=list)
    total_relevant_docs: int = 0
    highest_score: float = 0.0
    lowest_pinned_score: float = 0.0


class PinningController:
    """Pins documents whose stored relevance clears a threshold, then unpins them."""

    def __init__(self, client: WorkspaceClient, documents: DocumentMetadataRepository, min_score: float = 7.0):
        self.client = client
        self.documents = documents
        self.min_score = min_score

    async def pin_relevant_documents(
        self,
        workspace_slug: str,
        template_slug: str,
        customer_id: int,
        min_score: Optional[float] = None,
        pinned: Optional[List[str]] = None,
    ) -> PinningResult:
        """Pin a customer's documents that are relevant to a template.

        Relevance comes from the stored per-document scores; nothing is
        recomputed here. A failed pin is logged and skipped.

        Args:
            workspace_slug: Workspace to pin in
            template_slug: Template the documents should be relevant to
            customer_id: Owner of the documents
            min_score: Threshold, defaults to the controller's
            pinned: List that receives each path as soon as it is pinned

        Returns:
            PinningResult
        """
        threshold = self.min_score if min_score is None else min_score
        pinned = pinned if pinned is not None else []

        relevant = []
        for document in await self.documents.list_for_customer(customer_id):
            stored = document.stored_score(template_slug)
            if stored is not None and stored.score >= threshold:
                relevant.append((stored.score, document))
        relevant.sort(key=lambda item: (-item[0], item[1].filename))

        if not relevant:
            LOGGER.info(
                f"No documents with relevance >= {threshold}",
                extra={"template": template_slug, "customer_id": customer_id},
            )
            return PinningResult()

        for score, document in relevant:
            doc_path = document.external_document_path or document.filename
            try:
                await self.client.update_pin(workspace_slug, doc_path, True)
            except AppError as e:
                LOGGER.warning(
                    "Failed to pin document",
                    extra={"doc_path": doc_path, "workspace": workspace_slug, "error": str(e)},
                )
                continue
            pinned.append(doc_path)
            LOGGER.debug("Pinned document", extra={"doc_path": doc_path, "score": score})

        result = PinningResult(
            pinned_documents=list(pinned),
            total_relevant_docs=len(relevant),
            highest_score=relevant[0][0],
            lowest_pinned_score=relevant[-1][0],
        )
        LOGGER.info(
            f"Pinned {len(pinned)}/{len(relevant)} documents",
            extra={"template": template_slug, "workspace": workspace_slug},
        )
        return result

    async def unpin_documents(self, workspace_slug: str, document_paths: List[str]) -> List[str]:
        """Unpin each path; failures are logged, never raised.

        Returns:
            Paths that could not be unpinned
        """
        failed = []
        for doc_path in document_paths:
            try:
                await self.client.update_pin(workspace_slug, doc_path, False)
            except AppError as e:
                LOGGER.error(
                    "Failed to unpin document",
                    exc_info=True,
                    extra={"doc_path": doc_path, "workspace": workspace_slug, "error": str(e)},
                )
                failed.append(doc_path)
        return failed

    async def with_pinning(
        self,
        workspace_slug: str,
        template_slug: str,
        customer_id: int,
        operation: Callable[[PinningResult], Awaitable[T]],
        min_score: Optional[float] = None,
    ) -> T:
        """Run operation with the relevant documents pinned.

        Every document pinned here is unpinned before returning, including
        when pinning itself or the operation raises. Unpin failures never
        replace the original exception.
        """
        pinned: List[str] = []
        try:
            result = await self.pin_relevant_documents(
                workspace_slug, template_slug, customer_id, min_score, pinned=pinned
            )
            return await operation(result)
        finally:
            if pinned:
                await self.unpin_documents(workspace_slug, pinned)
