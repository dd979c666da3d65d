# models/quoted_household_detail.py
from sqlalchemy import Column, Date, String, Integer, BigInteger, Index
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from scorecard.db.base_class import Base, JSONType

class QuotedHouseholdDetail(Base):
    """One flattened row of a submission's repeated quoted-household section."""
    __tablename__ = "quoted_household_details"

    detail_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    submission_id = Column(UUID(as_uuid=True), nullable=False)
    agency_id = Column(UUID(as_uuid=True), nullable=False)
    team_member_id = Column(UUID(as_uuid=True), nullable=False)
    work_date = Column(Date, nullable=False)
    row_index = Column(Integer, nullable=False)
    household_name = Column(String(200), nullable=True)
    zip_code = Column(String(20), nullable=True)
    lead_source_id = Column(UUID(as_uuid=True), nullable=True)
    lead_source_label = Column(String(100), nullable=True)
    items_quoted = Column(Integer, nullable=True)
    policies_quoted = Column(Integer, nullable=True)
    premium_potential_cents = Column(BigInteger, nullable=True)
    extras = Column(JSONType, nullable=True)

    __table_args__ = (
        Index("idx_quoted_details_submission", "submission_id"),
        Index("idx_quoted_details_member_date", "team_member_id", "work_date"),
    )
