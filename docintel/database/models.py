"""SQLAlchemy models for customers, document metadata and template metadata."""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docintel.database.base import Base


class Customer(Base):
    """Customer owning uploaded documents and a workspace."""

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    workspace_slug: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    documents: Mapped[list["DocumentMetadataRecord"]] = relationship(
        "DocumentMetadataRecord", back_populates="customer", cascade="all, delete-orphan"
    )


class DocumentMetadataRecord(Base):
    """AI-extracted description of one uploaded file."""

    __tablename__ = "document_metadata"
    __table_args__ = (
        UniqueConstraint("customer_id", "filename", name="uq_document_metadata_customer_file"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    filename: Mapped[str] = mapped_column(String, nullable=False)
    external_document_path: Mapped[str | None] = mapped_column(String, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)

    document_type: Mapped[str | None] = mapped_column(String, nullable=True)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    key_topics: Mapped[list[str]] = mapped_column(JSON, default=list)
    data_categories: Mapped[list[str]] = mapped_column(JSON, default=list)
    mentioned_systems: Mapped[list[str]] = mapped_column(JSON, default=list)
    stakeholders: Mapped[list[str]] = mapped_column(JSON, default=list)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)

    estimated_page_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    estimated_word_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    has_tables: Mapped[bool] = mapped_column(Boolean, default=False)
    has_images: Mapped[bool] = mapped_column(Boolean, default=False)
    has_code_samples: Mapped[bool] = mapped_column(Boolean, default=False)

    date_range: Mapped[str | None] = mapped_column(String, nullable=True)
    meeting_date: Mapped[str | None] = mapped_column(String, nullable=True)

    # Type-specific fields plus the templateRelevance cache
    extra_fields: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    last_analyzed: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    analysis_version: Mapped[int] = mapped_column(Integer, default=1)

    # Relationships
    customer: Mapped["Customer"] = relationship("Customer", back_populates="documents")


class TemplateMetadataRecord(Base):
    """Data requirements and generation statistics of one template."""

    __tablename__ = "template_metadata"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    template_slug: Mapped[str] = mapped_column(String, unique=True, nullable=False, index=True)
    template_name: Mapped[str] = mapped_column(String, nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)

    template_type: Mapped[str | None] = mapped_column(String, nullable=True)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)
    output_format: Mapped[str | None] = mapped_column(String, nullable=True)

    required_data_types: Mapped[list[str]] = mapped_column(JSON, default=list)
    expected_entities: Mapped[list[str]] = mapped_column(JSON, default=list)
    data_structure_needs: Mapped[list[str]] = mapped_column(JSON, default=list)
    has_sections: Mapped[list[str]] = mapped_column(JSON, default=list)
    chart_types: Mapped[list[str]] = mapped_column(JSON, default=list)
    use_cases: Mapped[list[str]] = mapped_column(JSON, default=list)
    compatible_document_types: Mapped[list[str]] = mapped_column(JSON, default=list)

    has_charts: Mapped[bool] = mapped_column(Boolean, default=False)
    has_tables: Mapped[bool] = mapped_column(Boolean, default=False)
    has_formulas: Mapped[bool] = mapped_column(Boolean, default=False)
    table_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    style_theme: Mapped[str | None] = mapped_column(String, nullable=True)
    page_orientation: Mapped[str | None] = mapped_column(String, nullable=True)

    requires_aggregation: Mapped[bool] = mapped_column(Boolean, default=False)
    requires_time_series: Mapped[bool] = mapped_column(Boolean, default=False)
    requires_comparisons: Mapped[bool] = mapped_column(Boolean, default=False)
    requires_filtering: Mapped[bool] = mapped_column(Boolean, default=False)

    complexity: Mapped[str | None] = mapped_column(String, nullable=True)
    estimated_generation_time: Mapped[str | None] = mapped_column(String, nullable=True)
    target_audience: Mapped[str | None] = mapped_column(String, nullable=True)
    recommended_workspace_size: Mapped[str | None] = mapped_column(String, nullable=True)

    # Generation statistics
    actual_generation_times: Mapped[list[float]] = mapped_column(JSON, default=list)
    generation_count: Mapped[int] = mapped_column(Integer, default=0)
    avg_generation_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_generated_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    last_analyzed: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    analysis_version: Mapped[int] = mapped_column(Integer, default=1)
    workspace_slug: Mapped[str | None] = mapped_column(String, nullable=True)
