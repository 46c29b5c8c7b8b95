"""
Document and template metadata models.

These are the shapes the matching engine, the extractor and the job
scheduler exchange. Rows from the relational store are converted into them
through ``from_attributes``.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# API responses use camelCase keys; validation stays on field names
_CAMEL_OUTPUT = AliasGenerator(serialization_alias=to_camel)


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, (list, tuple, set)):
        return []
    return [str(item) for item in value if item is not None and str(item).strip()]


class TemplateRelevance(BaseModel):
    """Durable cached score of one document against one template."""

    template_slug: str
    template_name: Optional[str] = None
    score: float = Field(..., ge=0, le=10)
    reasoning: str = ""


class DocumentMetadata(BaseModel):
    """Structured description of an uploaded customer document."""

    model_config = ConfigDict(from_attributes=True, alias_generator=_CAMEL_OUTPUT)

    id: Optional[int] = None
    customer_id: int
    filename: str
    external_document_path: Optional[str] = Field(
        default=None,
        description="Qualified identifier of the document in the workspace service"
    )
    uploaded_at: Optional[datetime] = None
    file_size: Optional[int] = None

    document_type: Optional[str] = None
    purpose: Optional[str] = None
    description: Optional[str] = None

    key_topics: List[str] = Field(default_factory=list)
    data_categories: List[str] = Field(default_factory=list)
    mentioned_systems: List[str] = Field(default_factory=list)
    stakeholders: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    estimated_page_count: Optional[int] = None
    estimated_word_count: Optional[int] = None
    has_tables: bool = False
    has_images: bool = False
    has_code_samples: bool = False

    date_range: Optional[str] = None
    meeting_date: Optional[str] = None

    extra_fields: Dict[str, Any] = Field(default_factory=dict)

    last_analyzed: Optional[datetime] = None
    analysis_version: int = 1

    @field_validator("key_topics", "data_categories", "mentioned_systems", "stakeholders", "tags", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> List[str]:
        return _as_list(value)

    @field_validator("extra_fields", mode="before")
    @classmethod
    def _coerce_extra(cls, value: Any) -> Dict[str, Any]:
        return dict(value) if isinstance(value, dict) else {}

    @field_validator("has_tables", "has_images", "has_code_samples", mode="before")
    @classmethod
    def _coerce_flags(cls, value: Any) -> bool:
        return bool(value)

    @property
    def template_relevance(self) -> List[TemplateRelevance]:
        """Stored relevance entries, skipping malformed ones."""
        entries = self.extra_fields.get("templateRelevance") or []
        parsed: List[TemplateRelevance] = []
        for entry in entries if isinstance(entries, list) else []:
            try:
                parsed.append(TemplateRelevance.model_validate(entry))
            except ValueError:
                continue
        return parsed

    def stored_score(self, template_slug: str) -> Optional[TemplateRelevance]:
        """Return the stored relevance for template_slug, if any."""
        for entry in self.template_relevance:
            if entry.template_slug == template_slug:
                return entry
        return None


class TemplateMetadata(BaseModel):
    """What a generation template needs from its source documents."""

    model_config = ConfigDict(from_attributes=True, alias_generator=_CAMEL_OUTPUT)

    id: Optional[int] = None
    template_slug: str
    template_name: str
    uploaded_at: Optional[datetime] = None
    file_size: Optional[int] = None

    template_type: Optional[str] = None
    purpose: Optional[str] = None
    output_format: Optional[str] = None

    required_data_types: List[str] = Field(default_factory=list)
    expected_entities: List[str] = Field(default_factory=list)
    data_structure_needs: List[str] = Field(default_factory=list)
    has_sections: List[str] = Field(default_factory=list)
    chart_types: List[str] = Field(default_factory=list)
    use_cases: List[str] = Field(default_factory=list)
    compatible_document_types: List[str] = Field(default_factory=list)

    has_charts: bool = False
    has_tables: bool = False
    has_formulas: bool = False
    table_count: Optional[int] = None

    style_theme: Optional[str] = None
    page_orientation: Optional[str] = None

    requires_aggregation: bool = False
    requires_time_series: bool = False
    requires_comparisons: bool = False
    requires_filtering: bool = False

    complexity: Optional[str] = None
    estimated_generation_time: Optional[str] = None
    target_audience: Optional[str] = None
    recommended_workspace_size: Optional[str] = None

    actual_generation_times: List[float] = Field(default_factory=list)
    generation_count: int = 0
    avg_generation_time: Optional[float] = None
    last_generated_at: Optional[datetime] = None

    last_analyzed: Optional[datetime] = None
    analysis_version: int = 1
    workspace_slug: Optional[str] = None

    @field_validator(
        "required_data_types",
        "expected_entities",
        "data_structure_needs",
        "has_sections",
        "chart_types",
        "use_cases",
        "compatible_document_types",
        mode="before",
    )
    @classmethod
    def _coerce_lists(cls, value: Any) -> List[str]:
        return _as_list(value)

    @field_validator("actual_generation_times", mode="before")
    @classmethod
    def _coerce_times(cls, value: Any) -> List[float]:
        return [float(item) for item in value or []]

    @field_validator("generation_count", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        return int(value or 0)

    @field_validator(
        "has_charts",
        "has_tables",
        "has_formulas",
        "requires_aggregation",
        "requires_time_series",
        "requires_comparisons",
        "requires_filtering",
        mode="before",
    )
    @classmethod
    def _coerce_flags(cls, value: Any) -> bool:
        return bool(value)


class RelevanceScore(BaseModel):
    """Rule-based score with the signals that produced it."""

    score: float = Field(..., ge=0, le=10)
    reasons: List[str] = Field(default_factory=list)


class MatchResult(BaseModel):
    """Derived document-to-template compatibility for one document."""

    model_config = ConfigDict(alias_generator=_CAMEL_OUTPUT)

    filename: str
    template_slug: str
    relevance_score: float = Field(..., ge=0, le=10)
    reasoning: str = ""
    document_id: Optional[int] = None
    customer_id: Optional[int] = None
