import logging
from datetime import date, timedelta
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from scorecard.core.config import get_settings
from scorecard.crud import daily_metrics as crud_metrics
from scorecard.crud import scoring_config as crud_config
from scorecard.models import DailyMetric
from scorecard.services.scoring import weekday_counted

logger = logging.getLogger(__name__)


class StreakRecalculator:
    """
        Recomputes `streak_count` for a member's records around a date.

        A record's streak is a function of its own trailing window only
        (`date - window_days` through `date`), walked forward from zero:

        - Counted day with pass → streak + 1.
        - Counted day without pass → streak resets to 0.
        - No record on a weekday the rule counts → gap, streak resets to 0.
        - Non-counted day → carries the current streak unchanged.

        A change on the anchor date can only affect records whose window
        contains it, so every record from `anchor - window_days` through
        `anchor + window_days` is rewritten. The stored value never depends on
        which date triggered the recompute.
    """

    def __init__(self, db: AsyncSession, window_days: Optional[int] = None):
        self.db = db
        self.window_days = window_days or get_settings().streak_window_days

    async def _counted_days(self, record: DailyMetric, cache: Dict[str, Optional[dict]]) -> Optional[dict]:
        role = record.role or "Sales"
        if role not in cache:
            rule = await crud_config.get_rule(self.db, record.agency_id, role)
            cache[role] = rule.counted_days if rule is not None else None
        return cache[role]

    def trailing_streak(self, by_date: Dict[date, DailyMetric], end: date, counted_days: Optional[dict]) -> int:
        streak = 0
        day = end - timedelta(days=self.window_days)
        while day <= end:
            record = by_date.get(day)
            if record is None:
                if weekday_counted(counted_days, day):
                    streak = 0
            elif record.is_counted_day:
                streak = streak + 1 if record.passed else 0
            day += timedelta(days=1)
        return streak

    async def recompute(self, team_member_id: UUID, anchor: date) -> int:
        """Rewrite the affected records; returns the streak on the latest of them (0 when none)."""
        window = timedelta(days=self.window_days)
        first_affected = anchor - window
        last_affected = anchor + window
        records = await crud_metrics.get_metrics_in_range(
            self.db, team_member_id, first_affected - window, last_affected
        )
        by_date = {record.date: record for record in records}
        rules: Dict[str, Optional[dict]] = {}

        streak = 0
        for record in records:
            if record.date < first_affected:
                continue
            counted_days = await self._counted_days(record, rules)
            streak = self.trailing_streak(by_date, record.date, counted_days)
            record.streak_count = streak

        await self.db.flush()
        logger.debug("Streak for member %s around %s: %s", team_member_id, anchor, streak)
        return streak
