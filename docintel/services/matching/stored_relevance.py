"""Durable per-document relevance cache kept in ``extra_fields["templateRelevance"]``."""

from typing import Any, Dict, Iterable, List, Sequence

from docintel.schemas.metadata import DocumentMetadata, TemplateMetadata, TemplateRelevance
from docintel.services.matching.scorer import score_document, summarize_reasons

RELEVANCE_KEY = "templateRelevance"


def _ordered(entries: Iterable[TemplateRelevance]) -> List[TemplateRelevance]:
    return sorted(entries, key=lambda entry: (-entry.score, entry.template_slug))


def score_against_templates(
    document: DocumentMetadata,
    templates: Sequence[TemplateMetadata],
) -> List[TemplateRelevance]:
    """Rule-based relevance of one document against every template, best first."""
    entries = []
    for template in templates:
        result = score_document(template, document)
        entries.append(
            TemplateRelevance(
                template_slug=template.template_slug,
                template_name=template.template_name,
                score=result.score,
                reasoning=summarize_reasons(result.reasons),
            )
        )
    return _ordered(entries)


def merge_relevance(
    existing: Iterable[TemplateRelevance],
    updates: Iterable[TemplateRelevance],
    limit: int,
) -> List[Dict[str, Any]]:
    """Replace entries for the updated templates and keep the top ``limit``.

    Returns:
        JSON-ready entries for ``extra_fields["templateRelevance"]``
    """
    by_slug = {entry.template_slug: entry for entry in existing}
    for entry in updates:
        by_slug[entry.template_slug] = entry
    return [entry.model_dump() for entry in _ordered(by_slug.values())[:limit]]


def with_relevance(extra_fields: Dict[str, Any], entries: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Copy of extra_fields with the relevance list replaced."""
    updated = dict(extra_fields)
    updated[RELEVANCE_KEY] = entries
    return updated
