# models/scoring.py
from sqlalchemy import Column, String, Integer, Boolean, Numeric, CheckConstraint, UniqueConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from scorecard.db.base_class import Base, JSONType

DEFAULT_SELECTED_METRICS = ["outbound_calls", "talk_minutes", "quoted_count", "sold_items"]
DEFAULT_WEIGHTS = {"outbound_calls": 10, "talk_minutes": 20, "quoted_count": 30, "sold_items": 40}
DEFAULT_COUNTED_DAYS = {
    "monday": True, "tuesday": True, "wednesday": True, "thursday": True, "friday": True,
    "saturday": False, "sunday": False,
}


class ScoringRule(Base):
    __tablename__ = "scoring_rules"

    rule_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    agency_id = Column(UUID(as_uuid=True), nullable=False)
    role = Column(String(20), nullable=False, default="Sales")
    selected_metrics = Column(JSONType, nullable=False, default=lambda: list(DEFAULT_SELECTED_METRICS))
    weights = Column(JSONType, nullable=False, default=lambda: dict(DEFAULT_WEIGHTS))
    n_required = Column(Integer, nullable=False, default=2)
    counted_days = Column(JSONType, nullable=False, default=lambda: dict(DEFAULT_COUNTED_DAYS))
    count_weekend_if_submitted = Column(Boolean, nullable=False, default=True)
    backfill_days = Column(Integer, nullable=False, default=7)
    recalc_past_on_change = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("agency_id", "role", name="uq_scoring_rule_agency_role"),
        CheckConstraint("n_required BETWEEN 1 AND 8", name="chk_scoring_rule_n_required"),
    )


class Target(Base):
    """Pass bar for one metric; a row with `team_member_id` overrides the agency default."""
    __tablename__ = "targets"

    target_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    agency_id = Column(UUID(as_uuid=True), nullable=False)
    team_member_id = Column(UUID(as_uuid=True), nullable=True)
    metric_key = Column(String(60), nullable=False)
    value_number = Column(Numeric(14, 2), nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("agency_id", "team_member_id", "metric_key", name="uq_target_agency_member_metric"),
        Index("idx_targets_agency_metric", "agency_id", "metric_key"),
    )
