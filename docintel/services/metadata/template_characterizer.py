"""Template requirement analysis and generation-time statistics."""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from docintel.core.ai_client import WorkspaceChatAI
from docintel.core.exceptions import AppError
from docintel.prompts.template_prompts import build_template_analysis_prompt
from docintel.repositories.template_metadata_repository import TemplateMetadataRepository
from docintel.schemas.metadata import TemplateMetadata
from docintel.utils.logging import get_logger

LOGGER = get_logger(__name__)

GENERATION_WINDOW = 20
FAST_THRESHOLD = 5.0
SLOW_THRESHOLD = 15.0

# camelCase answer keys accepted for TemplateMetadata fields
_TEMPLATE_KEYS = {
    "templateType": "template_type",
    "purpose": "purpose",
    "outputFormat": "output_format",
    "requiredDataTypes": "required_data_types",
    "expectedEntities": "expected_entities",
    "dataStructureNeeds": "data_structure_needs",
    "hasSections": "has_sections",
    "chartTypes": "chart_types",
    "useCases": "use_cases",
    "compatibleDocumentTypes": "compatible_document_types",
    "hasCharts": "has_charts",
    "hasTables": "has_tables",
    "hasFormulas": "has_formulas",
    "tableCount": "table_count",
    "styleTheme": "style_theme",
    "pageOrientation": "page_orientation",
    "requiresAggregation": "requires_aggregation",
    "requiresTimeSeries": "requires_time_series",
    "requiresComparisons": "requires_comparisons",
    "requiresFiltering": "requires_filtering",
    "complexity": "complexity",
    "estimatedGenerationTime": "estimated_generation_time",
    "targetAudience": "target_audience",
    "recommendedWorkspaceSize": "recommended_workspace_size",
}


def generation_time_category(average_seconds: float) -> str:
    if average_seconds < FAST_THRESHOLD:
        return "Fast (<5s)"
    if average_seconds < SLOW_THRESHOLD:
        return "Moderate (5-15s)"
    return "Slow (>15s)"


_TEXT_FIELDS = {
    "template_type",
    "purpose",
    "output_format",
    "style_theme",
    "page_orientation",
    "complexity",
    "estimated_generation_time",
    "target_audience",
    "recommended_workspace_size",
}


def _template_fields(parsed: Dict[str, Any]) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    for key, field in _TEMPLATE_KEYS.items():
        value = parsed.get(key)
        if value is None:
            continue
        if field == "table_count":
            try:
                value = int(value)
            except (TypeError, ValueError):
                continue
        elif field in _TEXT_FIELDS:
            if isinstance(value, (dict, list)):
                continue
            value = str(value)
        fields[field] = value
    return fields


class TemplateCharacterizer:
    """Describes what data a template needs and tracks how long it takes to fill."""

    def __init__(self, ai: WorkspaceChatAI, templates: TemplateMetadataRepository):
        self.ai = ai
        self.templates = templates

    async def characterize(
        self,
        file_path: Path,
        template_slug: str,
        template_name: str,
        workspace_slug: str,
    ) -> TemplateMetadata:
        """Analyze a template file and store its requirements.

        An unusable AI answer still stores a minimal row (slug, name, output
        format) so the template takes part in matching with neutral scores.

        Args:
            file_path: Template file on disk
            template_slug: Unique template identifier
            template_name: Display name
            workspace_slug: Workspace whose chat performs the analysis

        Returns:
            TemplateMetadata: The stored row
        """
        prompt = build_template_analysis_prompt(file_path.name, template_name)
        fields: Dict[str, Any] = {}
        try:
            _, parsed = await self.ai.complete_json(prompt, workspace_slug)
            if isinstance(parsed, dict):
                fields = _template_fields(parsed)
            else:
                LOGGER.warning("Template analysis returned no JSON object", extra={"template": template_slug})
        except AppError as e:
            LOGGER.error(
                f"Template analysis failed: {e}",
                exc_info=True,
                extra={"template": template_slug, "workspace": workspace_slug},
            )

        fields.setdefault("output_format", file_path.suffix.lstrip(".").lower() or None)
        try:
            file_size: Optional[int] = (await asyncio.to_thread(file_path.stat)).st_size
        except OSError:
            file_size = None

        metadata = TemplateMetadata(
            template_slug=template_slug,
            template_name=template_name,
            file_size=file_size,
            workspace_slug=workspace_slug,
            last_analyzed=datetime.now(timezone.utc),
            **fields,
        )
        stored = await self.templates.upsert(metadata)
        LOGGER.info(
            "Characterized template",
            extra={
                "template": template_slug,
                "required_types": len(stored.required_data_types),
                "entities": len(stored.expected_entities),
            },
        )
        return stored

    async def record_generation_time(self, template_slug: str, seconds: float) -> Optional[TemplateMetadata]:
        """Add one generation duration to the template's rolling statistics.

        Returns:
            The updated template, or None when the slug is unknown
        """
        template = await self.templates.get_by_slug(template_slug)
        if template is None:
            LOGGER.info("No metadata for template; skipping generation time", extra={"template": template_slug})
            return None

        times = (template.actual_generation_times + [float(seconds)])[-GENERATION_WINDOW:]
        average = sum(times) / len(times)
        count = template.generation_count + 1
        estimate = generation_time_category(average)

        await self.templates.record_generation_stats(template_slug, times, count, average, estimate)
        LOGGER.info(
            f"Template {template_slug}: {count} generations, avg {average:.1f}s, category {estimate}",
            extra={"template": template_slug},
        )
        return await self.templates.get_by_slug(template_slug)

    async def find_compatible_templates(self, document_types: Sequence[str]) -> List[TemplateMetadata]:
        """Templates whose compatible document types overlap the given ones (case-insensitive containment)."""
        wanted = [kind.lower() for kind in document_types if kind]
        compatible = []
        for template in await self.templates.list_all():
            for compat in template.compatible_document_types:
                lowered = compat.lower()
                if any(kind in lowered or lowered in kind for kind in wanted):
                    compatible.append(template)
                    break
        return compatible
