# models/form_template.py
from sqlalchemy import Column, String, Boolean, Date, ForeignKey, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from scorecard.db.base_class import Base, JSONType

class FormTemplate(Base):
    __tablename__ = "form_templates"

    form_template_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    agency_id = Column(UUID(as_uuid=True), nullable=False)
    name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False, default="Sales")
    status = Column(String(20), nullable=False, default="draft")
    # {canonical_key: payload_key}
    field_mappings = Column(JSONType, nullable=True)
    # [{"key": payload_key, "selectedKpiSlug": slug}]
    kpi_fields = Column(JSONType, nullable=True)
    # [{"key", "label", "type"}] for top-level and repeated-section custom fields
    custom_fields = Column(JSONType, nullable=True)
    repeater_fields = Column(JSONType, nullable=True)
    late_counts_for_pass = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("status IN ('draft','published','archived')", name="chk_form_template_status"),
        Index("idx_form_templates_agency", "agency_id"),
    )


class KpiVersion(Base):
    """A labelled snapshot of an agency's KPI definitions; `valid_to` NULL marks the active one."""
    __tablename__ = "kpi_versions"

    kpi_version_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    agency_id = Column(UUID(as_uuid=True), nullable=False)
    label = Column(String(100), nullable=False)
    valid_from = Column(Date, nullable=False)
    valid_to = Column(Date, nullable=True)

    __table_args__ = (
        Index("idx_kpi_versions_agency", "agency_id"),
    )


class FormKpiBinding(Base):
    __tablename__ = "form_kpi_bindings"

    binding_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    form_template_id = Column(UUID(as_uuid=True), ForeignKey("form_templates.form_template_id", ondelete="CASCADE"), nullable=False)
    kpi_version_id = Column(UUID(as_uuid=True), ForeignKey("kpi_versions.kpi_version_id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        Index("idx_form_kpi_bindings_form", "form_template_id"),
    )
