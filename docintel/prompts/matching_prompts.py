# Prompts used by the relevance matching engine.
# The AI answer is parsed with extract_json_array; anything that is not a
# JSON array covering every listed document is discarded by the caller.

from typing import Sequence

from docintel.schemas.metadata import DocumentMetadata, TemplateMetadata

RERANK_INSTRUCTIONS = r"""
Score how well EACH document above can supply the data this template needs, on a 0-10 scale.

Weigh, in order of importance:
- Data type match (most important)
- Entity/topic overlap
- Structural alignment (tables, metrics, dates)
- Document type compatibility (a small bonus only; content matters more than format)

Return ONLY a JSON array with one entry per document, using the exact filenames listed:
[
  {
    "filename": "inventory-q3.xlsx",
    "score": 8.5,
    "reasoning": "Contains product inventory counts and monthly totals the template aggregates"
  }
]

CRITICAL: Keep reasoning under 40 words. Score strictly - only give 7+ if the document truly has what the template needs.
"""


def _join(values: Sequence[str], empty: str = "None") -> str:
    return ", ".join(values) if values else empty


def describe_template(template: TemplateMetadata) -> str:
    return "\n".join(
        [
            f"Template: {template.template_name} ({template.template_slug})",
            f"Purpose: {template.purpose or 'Not specified'}",
            f"Required Data Types: {_join(template.required_data_types)}",
            f"Expected Entities: {_join(template.expected_entities)}",
            f"Compatible Doc Types: {_join(template.compatible_document_types, 'Any')}",
            f"Needs Aggregation: {'Yes' if template.requires_aggregation else 'No'}",
            f"Needs Time-Series: {'Yes' if template.requires_time_series else 'No'}",
            f"Has Tables: {'Yes' if template.has_tables else 'No'}",
        ]
    )


def describe_document(index: int, document: DocumentMetadata) -> str:
    metrics = document.extra_fields.get("metrics")
    metric_count = len(metrics) if isinstance(metrics, list) else 0
    return "\n".join(
        [
            f"{index}. {document.filename}",
            f"   Type: {document.document_type or 'Unknown'}",
            f"   Purpose: {document.purpose or 'Not specified'}",
            f"   Data Categories: {_join(document.data_categories)}",
            f"   Key Topics: {_join(document.key_topics)}",
            f"   Has Tables: {'Yes' if document.has_tables else 'No'}",
            f"   Has Metrics: {metric_count}",
            f"   Date Range: {document.date_range or document.meeting_date or 'None'}",
        ]
    )


def build_rerank_prompt(template: TemplateMetadata, documents: Sequence[DocumentMetadata]) -> str:
    """Prompt asking the AI to score documents against one template."""
    listing = "\n".join(describe_document(i, doc) for i, doc in enumerate(documents, start=1))
    return (
        "You are a document-template matching expert.\n\n"
        "TEMPLATE REQUIREMENTS:\n"
        f"{describe_template(template)}\n\n"
        "DOCUMENTS:\n"
        f"{listing}\n"
        f"{RERANK_INSTRUCTIONS}"
    )
