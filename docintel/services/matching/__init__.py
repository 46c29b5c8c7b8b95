"""Document-to-template relevance matching."""

from docintel.services.matching.cache import RelevanceCache, cache_key
from docintel.services.matching.engine import MatchingContext, MatchingEngine
from docintel.services.matching.reranker import AIReranker
from docintel.services.matching.scorer import score_document, summarize_reasons

__all__ = [
    "AIReranker",
    "MatchingContext",
    "MatchingEngine",
    "RelevanceCache",
    "cache_key",
    "score_document",
    "summarize_reasons",
]
