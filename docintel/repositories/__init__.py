"""Repository layer modules."""

from docintel.repositories.customer_repository import CustomerRepository
from docintel.repositories.document_metadata_repository import DocumentMetadataRepository
from docintel.repositories.template_metadata_repository import TemplateMetadataRepository

__all__ = [
    "CustomerRepository",
    "DocumentMetadataRepository",
    "TemplateMetadataRepository",
]
