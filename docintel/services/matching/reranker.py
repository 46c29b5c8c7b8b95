"""Time-boxed AI re-ranking of rule-based match results."""

import asyncio
from typing import Any, Dict, List, Optional, Sequence

from docintel.core.ai_client import WorkspaceChatAI
from docintel.core.exceptions import AppError
from docintel.prompts.matching_prompts import build_rerank_prompt
from docintel.schemas.metadata import DocumentMetadata, MatchResult, TemplateMetadata
from docintel.services.matching.scorer import summarize_reasons
from docintel.utils.json_parser import extract_json_array
from docintel.utils.logging import get_logger

LOGGER = get_logger(__name__)


class AIReranker:
    """Asks the AI to score a shortlist of documents for one template.

    The whole answer is used or the whole answer is discarded: a timeout,
    a transport error, non-JSON output or an answer that misses a
    shortlisted document all return None so the caller keeps its
    rule-based scores.
    """

    def __init__(self, ai: WorkspaceChatAI, timeout: float = 10.0, shortlist_size: int = 25):
        self.ai = ai
        self.timeout = timeout
        self.shortlist_size = shortlist_size

    async def rerank(
        self,
        template: TemplateMetadata,
        documents: Sequence[DocumentMetadata],
        workspace_slug: str,
    ) -> Optional[List[MatchResult]]:
        """Score documents with the AI within the time budget.

        Args:
            template: Template whose requirements are matched
            documents: Shortlisted documents (at most shortlist_size)
            workspace_slug: Workspace whose chat answers the prompt

        Returns:
            One MatchResult per document, or None when the AI result is unusable
        """
        if not documents:
            return []

        prompt = build_rerank_prompt(template, documents)
        log_extra = {"template": template.template_slug, "documents": len(documents)}

        try:
            text = await asyncio.wait_for(self.ai.complete(prompt, workspace_slug), timeout=self.timeout)
        except asyncio.TimeoutError:
            LOGGER.warning(f"AI re-ranking exceeded {self.timeout:g}s, using rule-based scores", extra=log_extra)
            return None
        except AppError as e:
            LOGGER.warning("AI re-ranking call failed, using rule-based scores", extra={**log_extra, "error": str(e)})
            return None

        try:
            results = self._parse(text, template, documents)
        except (TypeError, ValueError):
            LOGGER.warning("AI re-ranking answer malformed", exc_info=True, extra=log_extra)
            results = None
        if results is None:
            LOGGER.warning("AI re-ranking answer unusable, using rule-based scores", extra=log_extra)
        return results

    @staticmethod
    def _parse(
        text: str,
        template: TemplateMetadata,
        documents: Sequence[DocumentMetadata],
    ) -> Optional[List[MatchResult]]:
        items = extract_json_array(text)
        if not items:
            return None

        by_name: Dict[str, DocumentMetadata] = {doc.filename: doc for doc in documents}
        scored: Dict[str, MatchResult] = {}

        for item in items:
            if not isinstance(item, dict):
                return None
            filename = item.get("filename")
            score: Any = item.get("score")
            if not isinstance(filename, str) or filename not in by_name:
                return None
            if isinstance(score, bool) or not isinstance(score, (int, float)):
                return None
            if not 0 <= score <= 10:
                return None
            doc = by_name[filename]
            scored[filename] = MatchResult(
                filename=filename,
                template_slug=template.template_slug,
                relevance_score=round(float(score), 1),
                reasoning=summarize_reasons([str(item.get("reasoning") or "")]),
                document_id=doc.id,
                customer_id=doc.customer_id,
            )

        if set(scored) != set(by_name):
            return None
        return list(scored.values())
