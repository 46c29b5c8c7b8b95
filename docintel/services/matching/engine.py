"""
Relevance matching engine.

Scores are rule-based by default. When a live workspace is available the
top of the ranking can be re-scored by the AI within a fixed time budget;
if that fails in any way the rule-based ranking is returned untouched.
Finished contexts are cached per (template, document set).
"""

from typing import List, Optional, Sequence

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from docintel.schemas.metadata import DocumentMetadata, MatchResult, RelevanceScore, TemplateMetadata
from docintel.services.matching.cache import RelevanceCache, cache_key
from docintel.services.matching.reranker import AIReranker
from docintel.services.matching.scorer import score_document, summarize_reasons
from docintel.utils.logging import get_logger

LOGGER = get_logger(__name__)

DETAILED_SUMMARIES = 5


class MatchingContext(BaseModel):
    """Ranked documents for one template plus prompt text for generation."""

    model_config = ConfigDict(alias_generator=AliasGenerator(serialization_alias=to_camel))

    template_slug: str
    matches: List[MatchResult] = Field(default_factory=list)
    prompt_enhancement: str = ""
    document_summaries: str = ""
    used_ai: bool = False


def _sort_matches(matches: List[MatchResult]) -> List[MatchResult]:
    # Ties broken by filename so equal scores rank the same way every time
    return sorted(matches, key=lambda match: (-match.relevance_score, match.filename))


def _document_key(document: DocumentMetadata) -> str:
    return str(document.id) if document.id is not None else f"{document.customer_id}:{document.filename}"


class MatchingEngine:
    """Computes document-to-template compatibility."""

    def __init__(
        self,
        cache: RelevanceCache[MatchingContext],
        reranker: Optional[AIReranker] = None,
    ):
        """Initialize the engine.

        Args:
            cache: Process-wide cache of finished contexts
            reranker: Optional AI re-ranker; without one only rule-based scores are used
        """
        self.cache = cache
        self.reranker = reranker

    def score(self, template: TemplateMetadata, document: DocumentMetadata) -> RelevanceScore:
        """Rule-based score for one pair."""
        return score_document(template, document)

    def match(self, template: TemplateMetadata, document: DocumentMetadata) -> MatchResult:
        result = self.score(template, document)
        return MatchResult(
            filename=document.filename,
            template_slug=template.template_slug,
            relevance_score=result.score,
            reasoning=summarize_reasons(result.reasons),
            document_id=document.id,
            customer_id=document.customer_id,
        )

    def rank(self, template: TemplateMetadata, documents: Sequence[DocumentMetadata]) -> List[MatchResult]:
        """Rule-based scores for every document, best first."""
        return _sort_matches([self.match(template, doc) for doc in documents])

    def find_relevant_documents(
        self,
        template: TemplateMetadata,
        documents: Sequence[DocumentMetadata],
        min_score: float = 0.0,
    ) -> List[MatchResult]:
        """Rank documents preferring the durable stored score over recomputation.

        Args:
            template: Template to match against
            documents: Candidate documents
            min_score: Drop matches scoring below this

        Returns:
            Matches with score >= min_score, best first
        """
        matches: List[MatchResult] = []
        for document in documents:
            stored = document.stored_score(template.template_slug)
            if stored is not None:
                matches.append(
                    MatchResult(
                        filename=document.filename,
                        template_slug=template.template_slug,
                        relevance_score=stored.score,
                        reasoning=stored.reasoning,
                        document_id=document.id,
                        customer_id=document.customer_id,
                    )
                )
            else:
                matches.append(self.match(template, document))
        return _sort_matches([match for match in matches if match.relevance_score >= min_score])

    async def build_matching_context(
        self,
        template: TemplateMetadata,
        documents: Sequence[DocumentMetadata],
        workspace_slug: Optional[str] = None,
        use_ai: bool = True,
    ) -> MatchingContext:
        """Rank documents for a template and render the generation context.

        A cache hit returns the stored context without scoring or calling
        the AI. Otherwise the rule-based ranking is computed and, when a
        workspace and re-ranker are available, the top documents are sent
        for AI scoring. AI scores replace rule-based ones only when the
        whole AI answer is usable.

        Args:
            template: Template to match against
            documents: Candidate documents (usually one customer's)
            workspace_slug: Live workspace enabling the AI path
            use_ai: Whether the AI path may be attempted

        Returns:
            MatchingContext with ranked matches and prompt text
        """
        key = cache_key(template.template_slug, [_document_key(doc) for doc in documents])
        cached = self.cache.get(key)
        if cached is not None:
            LOGGER.debug("Matching context cache hit", extra={"template": template.template_slug})
            return cached

        matches = self.find_relevant_documents(template, documents)
        used_ai = False

        if use_ai and workspace_slug and self.reranker is not None and matches:
            shortlist_names = {match.filename for match in matches[: self.reranker.shortlist_size]}
            shortlist = [doc for doc in documents if doc.filename in shortlist_names]
            ai_matches = await self.reranker.rerank(template, shortlist, workspace_slug)
            if ai_matches is not None:
                rest = [match for match in matches if match.filename not in shortlist_names]
                matches = _sort_matches(ai_matches + rest)
                used_ai = True

        by_name = {doc.filename: doc for doc in documents}
        context = MatchingContext(
            template_slug=template.template_slug,
            matches=matches,
            prompt_enhancement=build_prompt_enhancement(template),
            document_summaries=build_document_summaries(matches, by_name),
            used_ai=used_ai,
        )
        self.cache.put(key, context)

        LOGGER.info(
            "Built matching context",
            extra={
                "template": template.template_slug,
                "documents": len(documents),
                "top_score": matches[0].relevance_score if matches else 0,
                "used_ai": used_ai,
            },
        )
        return context


def build_prompt_enhancement(template: TemplateMetadata) -> str:
    lines = [
        "=== TEMPLATE CONTEXT ===",
        f"This template requires: {template.purpose or 'document generation'}",
    ]
    if template.required_data_types:
        lines.append(f"Expected data types: {', '.join(template.required_data_types)}")
    if template.expected_entities:
        lines.append(f"Key entities needed: {', '.join(template.expected_entities)}")

    operations = []
    if template.requires_aggregation:
        operations.append("aggregation (sums, averages, counts)")
    if template.requires_time_series:
        operations.append("time-series ordering")
    if template.requires_comparisons:
        operations.append("comparisons (before/after)")
    if template.requires_filtering:
        operations.append("data filtering")
    if operations:
        lines.append(f"Required operations: {', '.join(operations)}")

    return "\n".join(lines) + "\n"


def build_document_summaries(matches: Sequence[MatchResult], documents: dict) -> str:
    """Detailed notes for the top documents and one line for the rest."""
    if not matches:
        return (
            "=== NO DOCUMENT METADATA AVAILABLE ===\n"
            "No analyzed documents found in workspace. Will use general workspace query.\n"
        )

    lines = [
        "=== RELEVANT WORKSPACE DOCUMENTS ===",
        f"Found {len(matches)} documents. Focus on the most relevant:",
        "",
    ]
    for index, match in enumerate(matches[:DETAILED_SUMMARIES], start=1):
        lines.append(f"{index}. {match.filename} (Relevance: {match.relevance_score}/10)")
        lines.append(f"   Reason: {match.reasoning}")
        document: Optional[DocumentMetadata] = documents.get(match.filename)
        if document is not None:
            if document.purpose:
                lines.append(f"   Purpose: {document.purpose}")
            if document.data_categories:
                lines.append(f"   Contains: {', '.join(document.data_categories)}")
            metrics = document.extra_fields.get("metrics")
            if isinstance(metrics, list) and metrics:
                suffix = "..." if len(metrics) > 5 else ""
                lines.append(f"   Metrics: {', '.join(str(m) for m in metrics[:5])}{suffix}")
        lines.append("")

    remaining = matches[DETAILED_SUMMARIES:]
    if remaining:
        lines.append(f"Other available documents ({len(remaining)}):")
        lines.extend(f"- {match.filename} (Relevance: {match.relevance_score}/10)" for match in remaining)

    return "\n".join(lines) + "\n"
