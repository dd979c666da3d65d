# models/extraction_audit.py
from sqlalchemy import Column, Integer, Boolean, Index
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from scorecard.db.base_class import Base, JSONType

class ExtractionAudit(Base):
    __tablename__ = "extraction_audits"

    audit_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    submission_id = Column(UUID(as_uuid=True), nullable=False)
    form_template_id = Column(UUID(as_uuid=True), nullable=True)
    team_member_id = Column(UUID(as_uuid=True), nullable=True)
    had_mapping_config = Column(Boolean, nullable=False, default=False)
    key_sources = Column(JSONType, nullable=False, default=dict)        # {metric_key: path used}
    extracted_values = Column(JSONType, nullable=False, default=dict)
    values_extracted = Column(Integer, nullable=False, default=0)
    absent_keys = Column(JSONType, nullable=False, default=list)
    coercion_failures = Column(JSONType, nullable=False, default=list)  # [{key, raw}]
    rows_processed = Column(Integer, nullable=False, default=0)
    rows_skipped = Column(Integer, nullable=False, default=0)
    rows_failed = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_extraction_audits_submission", "submission_id"),
    )
