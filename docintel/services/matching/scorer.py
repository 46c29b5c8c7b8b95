"""
Rule-based document-to-template relevance scoring.

Matching is about content, not file format: a markdown meeting-notes file
can feed a spreadsheet template if it holds the data the template needs.

Point budget (clamped to 0-10, rounded to one decimal):
    data types          up to 4   (2 when the template names none)
    document type       0.5 base + 0.5 when compatible
    expected entities   up to 3   (1.5 when the template names none)
    content signals     up to 2
    structure           0.5 tables, 0.75 aggregation, 0.75 time series
"""

from typing import Iterable, List, Sequence

from docintel.schemas.metadata import DocumentMetadata, RelevanceScore, TemplateMetadata

NEUTRAL_REASON = "General compatibility based on available metadata"

SYSTEM_KEYWORDS = ("system", "platform", "application", "tool", "software", "service")

PURPOSE_TERMS = (
    "report",
    "analysis",
    "summary",
    "tracking",
    "planning",
    "metrics",
    "performance",
    "status",
    "review",
    "assessment",
)

DATA_TYPE_POINTS = 4.0
DATA_TYPE_BASE = 2.0
DOC_TYPE_BONUS = 0.5
DOC_TYPE_BASE = 0.5
ENTITY_POINTS = 3.0
ENTITY_BASE = 1.5
STAKEHOLDER_FALLBACK = 0.5
PRIMARY_ENTITY_FALLBACK = 1.0
CONTENT_SIGNAL = 0.5
CONTENT_CAP = 2.0
TABLE_BONUS = 0.5
AGGREGATION_BONUS = 0.75
TIME_SERIES_BONUS = 0.75


def _fuzzy_equal(left: str, right: str) -> bool:
    """Case-insensitive containment in either direction."""
    a, b = left.lower(), right.lower()
    return bool(a and b) and (a in b or b in a)


def _overlap(wanted: Sequence[str], available: Iterable[str]) -> List[str]:
    available = [item for item in available if item]
    return [item for item in wanted if any(_fuzzy_equal(item, other) for other in available)]


def _string_list(value) -> List[str]:
    if isinstance(value, list):
        return [str(item) for item in value if item]
    return []


def score_document(template: TemplateMetadata, document: DocumentMetadata) -> RelevanceScore:
    """Score how well a document's content fits a template's data needs.

    Deterministic: identical inputs always give identical output.

    Args:
        template: Template requirements
        document: Document description

    Returns:
        RelevanceScore with the score and the signals that fired
    """
    score = 0.0
    reasons: List[str] = []
    extra = document.extra_fields

    # Required data types
    required = template.required_data_types
    if required:
        matched = _overlap(required, document.data_categories)
        if matched:
            ratio = len(matched) / len(required)
            score += ratio * DATA_TYPE_POINTS
            if ratio >= 1:
                reasons.append(f"Matches ALL {len(matched)} required data types: {', '.join(matched)}")
            else:
                reasons.append(f"Matches {len(matched)}/{len(required)} data types: {', '.join(matched)}")
    else:
        score += DATA_TYPE_BASE

    # Document type is a bonus, never a gate
    if template.compatible_document_types and document.document_type:
        if any(_fuzzy_equal(document.document_type, kind) for kind in template.compatible_document_types):
            score += DOC_TYPE_BONUS
            reasons.append(f"Document type '{document.document_type}' is compatible (bonus)")
    score += DOC_TYPE_BASE

    # Expected entities: topics, then stakeholders, then primary entities
    expected = template.expected_entities
    if expected:
        topic_overlap = _overlap(expected, document.key_topics)
        if topic_overlap:
            score += len(topic_overlap) / len(expected) * ENTITY_POINTS
            reasons.append(
                f"Contains {len(topic_overlap)}/{len(expected)} expected entities: {', '.join(topic_overlap)}"
            )
        else:
            stakeholder_overlap = _overlap(expected, document.stakeholders)
            if stakeholder_overlap:
                score += STAKEHOLDER_FALLBACK
                reasons.append(f"Mentions {len(stakeholder_overlap)} expected entities in stakeholders")

            primary_overlap = _overlap(expected, _string_list(extra.get("primaryEntities")))
            if primary_overlap:
                score += PRIMARY_ENTITY_FALLBACK
                reasons.append(f"Contains {len(primary_overlap)} expected entities in primary entities")
    else:
        score += ENTITY_BASE

    # Secondary content signals
    content = 0.0
    template_systems = [
        entity for entity in expected if any(keyword in entity.lower() for keyword in SYSTEM_KEYWORDS)
    ]
    if template_systems and _overlap(template_systems, document.mentioned_systems):
        content += CONTENT_SIGNAL
        reasons.append("Mentions relevant systems/platforms")

    audience = (template.target_audience or "").lower()
    departments = _string_list(extra.get("departments"))
    if audience and any(_fuzzy_equal(dept, audience) for dept in departments):
        content += CONTENT_SIGNAL
        reasons.append("Relevant to target audience/department")

    if document.purpose and template.purpose:
        doc_purpose = document.purpose.lower()
        template_purpose = template.purpose.lower()
        shared = [term for term in PURPOSE_TERMS if term in doc_purpose and term in template_purpose]
        if shared:
            content += CONTENT_SIGNAL
            reasons.append(f"Shared purpose: {', '.join(shared)}")

    score += min(CONTENT_CAP, content)

    # Structural bonuses
    if template.has_tables and document.has_tables:
        score += TABLE_BONUS
        reasons.append("Both have tabular data")

    if template.requires_aggregation:
        metrics = _string_list(extra.get("metrics"))
        if metrics:
            score += AGGREGATION_BONUS
            reasons.append(f"Has {len(metrics)} metrics for aggregation")
        elif extra.get("hasAggregations"):
            score += AGGREGATION_BONUS
            reasons.append("Has aggregations")

    if template.requires_time_series and (document.date_range or extra.get("timeframe") or document.meeting_date):
        score += TIME_SERIES_BONUS
        reasons.append("Has time-series/temporal data")

    score = min(10.0, max(0.0, score))
    if not reasons:
        reasons.append(NEUTRAL_REASON)

    return RelevanceScore(score=round(score, 1), reasons=reasons)


def summarize_reasons(reasons: Sequence[str], max_words: int = 40) -> str:
    """Join reasons into one sentence capped at max_words words."""
    words = "; ".join(reasons).split()
    if len(words) <= max_words:
        return " ".join(words)
    return " ".join(words[:max_words]) + "..."
