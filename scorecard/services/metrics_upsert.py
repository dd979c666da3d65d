import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from scorecard.crud import daily_metrics as crud_metrics
from scorecard.crud import scoring_config as crud_config
from scorecard.crud import reference as crud_reference
from scorecard.models import DailyMetric, KpiVersion
from scorecard.services.scoring import ScoringEngine, is_counted_day
from scorecard.services.streaks import StreakRecalculator

logger = logging.getLogger(__name__)

# Counters several producers increment independently: merged with max()
ADDITIVE_COUNTERS = ("quoted_count", "sold_items")

# Values only the scorecard reports: merged by overwrite
AUTHORITATIVE_FIELDS = (
    "outbound_calls",
    "talk_minutes",
    "sold_policies",
    "sold_premium_cents",
    "cross_sells_uncovered",
    "mini_reviews",
    "quoted_entity",
    "custom_kpis",
)

_NEW_RECORD_DEFAULTS = {
    "outbound_calls": 0,
    "talk_minutes": 0,
    "quoted_count": 0,
    "sold_items": 0,
    "sold_policies": 0,
    "sold_premium_cents": 0,
    "cross_sells_uncovered": 0,
    "mini_reviews": 0,
}


def merge_values(existing: Optional[Dict[str, Any]], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """
    Column updates produced by merging `incoming` onto `existing`.

    Additive counters take max(existing, incoming); authoritative fields are
    overwritten. Keys missing from `incoming` (absent, not zero) leave the
    stored value alone.
    """
    existing = existing or {}
    merged: Dict[str, Any] = {}
    for column in ADDITIVE_COUNTERS:
        if incoming.get(column) is not None:
            merged[column] = max(int(existing.get(column) or 0), int(incoming[column]))
    for column in AUTHORITATIVE_FIELDS:
        if column in incoming:
            merged[column] = incoming[column]
    unknown = set(incoming) - set(ADDITIVE_COUNTERS) - set(AUTHORITATIVE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown metric columns: {sorted(unknown)}")
    return merged


def _snapshot(record: DailyMetric) -> Dict[str, Any]:
    return {column: getattr(record, column) for column in ADDITIVE_COUNTERS + AUTHORITATIVE_FIELDS}


class MetricsUpsertEngine:
    """
        Single merge path for every writer of DailyMetric rows.

        Responsibilities:
        1. Find the (member, date) row, locking it where the database supports it.
        2. Insert when missing. A new row needs a KPI version (explicit, then the
           form binding, then the agency default); without one the write is
           skipped with a warning and None is returned.
        3. Apply `merge_values` (max for additive counters, overwrite for
           authoritative fields).
        4. Re-derive counted day and score with the current scoring rule.
        5. Recompute the member's streak around the date.

        The engine flushes but never commits; callers own the transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.scoring = ScoringEngine(db)

    async def resolve_kpi_version(
        self, agency_id: UUID, form_template_id: Optional[UUID] = None
    ) -> Optional[KpiVersion]:
        if form_template_id is not None:
            version = await crud_config.get_form_kpi_version(self.db, form_template_id)
            if version is not None:
                return version
        return await crud_config.get_active_kpi_version(self.db, agency_id)

    async def member_role(self, team_member_id: UUID) -> str:
        """Scoring role for writes that carry no form; Hybrid members fall back to Sales."""
        member = await crud_reference.get_team_member(self.db, team_member_id)
        if member is None:
            raise LookupError(f"Team member {team_member_id} not found")
        return member.role if member.role != "Hybrid" else "Sales"

    async def merge(
        self,
        *,
        agency_id: UUID,
        team_member_id: UUID,
        metric_date: date,
        role: str,
        values: Dict[str, Any],
        form_template_id: Optional[UUID] = None,
        is_late: Optional[bool] = None,
        final_submission_id: Optional[UUID] = None,
        late_counts_for_pass: Optional[bool] = None,
    ) -> Optional[DailyMetric]:
        record = await crud_metrics.get_metric_by_member_and_date(
            self.db, team_member_id, metric_date, for_update=True
        )
        from_submission = final_submission_id is not None

        if record is None:
            version = await self.resolve_kpi_version(agency_id, form_template_id)
            if version is None:
                logger.warning(
                    "No KPI version for agency %s (form %s); skipping metrics insert for member %s on %s",
                    agency_id, form_template_id, team_member_id, metric_date,
                )
                return None
            fields = dict(_NEW_RECORD_DEFAULTS)
            fields.update(merge_values(None, values))
            record = await crud_metrics.create_metric(
                self.db,
                metric_id=uuid4(),
                agency_id=agency_id,
                team_member_id=team_member_id,
                date=metric_date,
                role=role,
                kpi_version_id=version.kpi_version_id,
                label_at_submit=version.label,
                is_late=bool(is_late),
                final_submission_id=final_submission_id,
                submitted_at=datetime.utcnow() if from_submission else None,
                **fields,
            )
        else:
            for column, value in merge_values(_snapshot(record), values).items():
                setattr(record, column, value)
            if from_submission:
                # the scorecard owns the row's submission metadata
                record.role = role
                record.final_submission_id = final_submission_id
                record.submitted_at = datetime.utcnow()
                version = await self.resolve_kpi_version(agency_id, form_template_id)
                if version is not None:
                    record.kpi_version_id = version.kpi_version_id
                    record.label_at_submit = version.label
            if is_late is not None:
                record.is_late = is_late

        rule = await crud_config.get_or_create_rule(self.db, agency_id, record.role or role)
        record.is_counted_day = is_counted_day(rule, metric_date, submitted=True)
        await self.scoring.score_record(record, rule, late_counts_for_pass)
        await self.db.flush()

        await StreakRecalculator(self.db).recompute(team_member_id, metric_date)
        return record

    async def increment(
        self,
        *,
        agency_id: UUID,
        team_member_id: UUID,
        metric_date: date,
        column: str = "quoted_count",
        by: int = 1,
    ) -> Optional[DailyMetric]:
        """Add `by` to an additive counter through the same max-merge every writer uses."""
        if column not in ADDITIVE_COUNTERS:
            raise ValueError(f"{column} is not an additive counter")

        # read under the row lock so concurrent increments serialize on the current value
        existing = await crud_metrics.get_metric_by_member_and_date(
            self.db, team_member_id, metric_date, for_update=True
        )
        if existing is not None:
            role = existing.role
            current = getattr(existing, column) or 0
        else:
            role = await self.member_role(team_member_id)
            current = 0

        return await self.merge(
            agency_id=agency_id,
            team_member_id=team_member_id,
            metric_date=metric_date,
            role=role or "Sales",
            values={column: current + by},
        )

    async def rescore(self, agency_id: UUID, start: date, end: date) -> int:
        """Re-derive scores and streaks for a date range with the rules as they are now."""
        records = await crud_metrics.get_agency_metrics_in_range(self.db, agency_id, start, end)
        spans: Dict[UUID, Tuple[date, date]] = {}
        for record in records:
            rule = await crud_config.get_or_create_rule(self.db, agency_id, record.role or "Sales")
            record.is_counted_day = is_counted_day(rule, record.date, submitted=True)
            await self.scoring.score_record(record, rule)
            first, last = spans.get(record.team_member_id, (record.date, record.date))
            spans[record.team_member_id] = (min(first, record.date), max(last, record.date))
        await self.db.flush()

        streaks = StreakRecalculator(self.db)
        step = timedelta(days=streaks.window_days)
        for team_member_id, (first, last) in spans.items():
            # each recompute rewrites anchor +/- window, so step across the whole span
            anchor = first
            while True:
                await streaks.recompute(team_member_id, anchor)
                if anchor + step >= last:
                    break
                anchor += step
        return len(records)
