"""Document and template metadata analysis."""

from docintel.services.metadata.extractor import MetadataExtractor, analysis_to_metadata, is_usable_analysis
from docintel.services.metadata.runner import ExtractionRunner
from docintel.services.metadata.template_characterizer import TemplateCharacterizer, generation_time_category
from docintel.services.metadata.workspace_index import WorkspaceIndexPublisher, generate_workspace_index

__all__ = [
    "ExtractionRunner",
    "MetadataExtractor",
    "TemplateCharacterizer",
    "WorkspaceIndexPublisher",
    "analysis_to_metadata",
    "generate_workspace_index",
    "generation_time_category",
    "is_usable_analysis",
]
