from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class DailyMetricResponse(BaseModel):
    metric_id: UUID
    team_member_id: UUID
    date: date
    role: Optional[str]
    kpi_version_id: UUID
    label_at_submit: Optional[str]
    outbound_calls: int
    talk_minutes: int
    quoted_count: int
    sold_items: int
    sold_policies: int
    sold_premium_cents: int
    cross_sells_uncovered: int
    mini_reviews: int
    quoted_entity: Optional[str]
    custom_kpis: Optional[Dict[str, Any]]
    is_counted_day: bool
    is_late: bool
    hits: int
    daily_score: float
    passed: bool
    streak_count: int
    final_submission_id: Optional[UUID]
    submitted_at: Optional[datetime]

    model_config = {"from_attributes": True}


class MemberMetricsResponse(BaseModel):
    team_member_id: UUID
    start: date
    end: date
    current_streak: int
    records: List[DailyMetricResponse]


class StreakResponse(BaseModel):
    team_member_id: UUID
    as_of: date
    streak: int


# --- Admin batch jobs ---
class BackfillRequest(BaseModel):
    agency_id: UUID
    days: Optional[int] = Field(default=None, ge=1, le=366)


class DateRangeRequest(BaseModel):
    agency_id: UUID
    start: date
    end: date


class BatchSummary(BaseModel):
    processed: int = 0
    skipped: int = 0
    errors: int = 0


class ReconciliationSummary(BatchSummary):
    promoted_to_quoted: int = 0
    promoted_to_sold: int = 0
    ghosts_deleted: int = 0
