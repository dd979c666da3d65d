# models/lead_source.py
from sqlalchemy import Column, String, Boolean, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from scorecard.db.base_class import Base

class LeadSource(Base):
    __tablename__ = "lead_sources"

    lead_source_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    agency_id = Column(UUID(as_uuid=True), nullable=False)
    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("agency_id", "name", name="uq_lead_source_agency_name"),
    )
