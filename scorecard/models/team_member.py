# models/team_member.py
from sqlalchemy import Column, String, Boolean, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from scorecard.db.base_class import Base

class TeamMember(Base):
    __tablename__ = "team_members"

    team_member_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    agency_id = Column(UUID(as_uuid=True), nullable=False)
    name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False, default="Sales")  # Sales, Service, Hybrid, Manager
    active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("role IN ('Sales','Service','Hybrid','Manager')", name="chk_team_member_role"),
        Index("idx_team_members_agency", "agency_id"),
    )
