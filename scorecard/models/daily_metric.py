# models/daily_metric.py
from sqlalchemy import Column, Date, DateTime, Integer, BigInteger, Numeric, String, Text, Boolean, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from scorecard.db.base_class import Base, JSONType

class DailyMetric(Base):
    """One row per (team member, calendar date); rows are merged into, never deleted."""
    __tablename__ = "daily_metrics"

    metric_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    agency_id = Column(UUID(as_uuid=True), nullable=False)
    team_member_id = Column(UUID(as_uuid=True), nullable=False)
    date = Column(Date, nullable=False)
    role = Column(String(20), nullable=True)
    kpi_version_id = Column(UUID(as_uuid=True), nullable=False)
    label_at_submit = Column(String(100), nullable=True)

    # Raw activity
    outbound_calls = Column(Integer, nullable=False, default=0)
    talk_minutes = Column(Integer, nullable=False, default=0)
    quoted_count = Column(Integer, nullable=False, default=0)
    sold_items = Column(Integer, nullable=False, default=0)
    sold_policies = Column(Integer, nullable=False, default=0)
    sold_premium_cents = Column(BigInteger, nullable=False, default=0)
    cross_sells_uncovered = Column(Integer, nullable=False, default=0)
    mini_reviews = Column(Integer, nullable=False, default=0)
    quoted_entity = Column(Text, nullable=True)
    custom_kpis = Column(JSONType, nullable=True)

    # Scoring
    is_counted_day = Column(Boolean, nullable=False, default=True)
    is_late = Column(Boolean, nullable=False, default=False)
    hits = Column(Integer, nullable=False, default=0)
    daily_score = Column(Numeric(10, 2), nullable=False, default=0)
    passed = Column("pass", Boolean, nullable=False, default=False)
    streak_count = Column(Integer, nullable=False, default=0)

    final_submission_id = Column(UUID(as_uuid=True), nullable=True)
    submitted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("team_member_id", "date", name="unique_member_date"),
        Index("idx_daily_metrics_agency_date", "agency_id", "date"),
        Index("idx_daily_metrics_member", "team_member_id"),
    )
