import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from scorecard.crud import scoring_config as crud_config
from scorecard.crud import submissions as crud_submissions
from scorecard.crud import reference as crud_reference
from scorecard.models import DailyMetric, ScoringRule
from scorecard.models.scoring import DEFAULT_COUNTED_DAYS

logger = logging.getLogger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# Renamed metric keys; weights and targets fall back across each pair
METRIC_KEY_ALIASES: Dict[str, str] = {
    "quoted_households": "quoted_count",
    "quoted_count": "quoted_households",
    "items_sold": "sold_items",
    "sold_items": "items_sold",
}

# Scoring key -> DailyMetric column
_KEY_COLUMNS: Dict[str, str] = {
    "outbound_calls": "outbound_calls",
    "talk_minutes": "talk_minutes",
    "quoted_households": "quoted_count",
    "quoted_count": "quoted_count",
    "items_sold": "sold_items",
    "sold_items": "sold_items",
    "sold_policies": "sold_policies",
    "sold_premium": "sold_premium_cents",
    "cross_sells_uncovered": "cross_sells_uncovered",
    "mini_reviews": "mini_reviews",
}


def weekday_counted(counted_days: Optional[Dict[str, Any]], day: date) -> bool:
    flags = counted_days if counted_days else DEFAULT_COUNTED_DAYS
    return bool(flags.get(WEEKDAYS[day.weekday()], False))


def is_counted_day(rule: Optional[ScoringRule], day: date, submitted: bool = True) -> bool:
    """Weekday flag from the rule; an uncounted weekend day counts when something was submitted."""
    counted_days = rule.counted_days if rule is not None else None
    if weekday_counted(counted_days, day):
        return True
    count_weekend = rule.count_weekend_if_submitted if rule is not None else True
    return bool(submitted and count_weekend and day.weekday() >= 5)


def metric_value(record: DailyMetric, key: str) -> float:
    column = _KEY_COLUMNS.get(key)
    if column is not None:
        return float(getattr(record, column) or 0)
    custom = record.custom_kpis or {}
    try:
        return float(custom.get(key) or 0)
    except (TypeError, ValueError):
        logger.warning("Custom KPI %s on metric %s is not numeric: %r", key, record.metric_id, custom.get(key))
        return 0.0


def resolve_weight(weights: Optional[Dict[str, Any]], key: str) -> float:
    weights = weights or {}
    value = weights.get(key)
    if not value and key in METRIC_KEY_ALIASES:
        value = weights.get(METRIC_KEY_ALIASES[key])
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


@dataclass
class ScoreResult:
    hits: int = 0
    score: float = 0.0
    passed: bool = False
    key_hits: Dict[str, bool] = field(default_factory=dict)


def evaluate(
    values: Dict[str, float],
    selected: Iterable[str],
    weights: Optional[Dict[str, Any]],
    targets: Dict[str, float],
    n_required: int,
    is_late: bool = False,
    late_counts_for_pass: bool = False,
) -> ScoreResult:
    """
        Score one day of activity.

        A key hits when its value meets or exceeds its target. `sold_premium`
        values are in cents and its targets in dollars. Pass needs at least
        `n_required` hits; an empty selection always passes; a late day fails
        unless late submissions count for pass.
    """
    selected = list(selected or [])
    result = ScoreResult()

    for key in selected:
        target = targets.get(key, 0.0) or 0.0
        value = values.get(key, 0.0)
        bar = target * 100 if key == "sold_premium" else target
        hit = value >= bar
        result.key_hits[key] = hit
        if hit:
            result.hits += 1
            result.score += resolve_weight(weights, key)

    if not selected:
        result.passed = True
    else:
        result.passed = result.hits >= n_required

    if is_late and not late_counts_for_pass:
        result.passed = False
    return result


class ScoringEngine:
    """
        Derives hits, weighted score and pass/fail for a DailyMetric.

        Targets resolve member override first, then the agency default, then
        zero. Renamed keys (`quoted_households`/`quoted_count`,
        `items_sold`/`sold_items`) fall back to each other when one side has no
        target configured.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_target(self, agency_id, team_member_id, key: str) -> float:
        value = await crud_config.get_target_value(self.db, agency_id, team_member_id, key)
        if not value and key in METRIC_KEY_ALIASES:
            value = await crud_config.get_target_value(
                self.db, agency_id, team_member_id, METRIC_KEY_ALIASES[key]
            )
        return float(value or 0)

    async def late_counts_for_pass(self, record: DailyMetric) -> bool:
        if record.final_submission_id is None:
            return False
        submission = await crud_submissions.get_submission(self.db, record.final_submission_id)
        if submission is None:
            return False
        form = await crud_reference.get_form_template(self.db, submission.form_template_id)
        return bool(form and form.late_counts_for_pass)

    async def score_record(
        self,
        record: DailyMetric,
        rule: ScoringRule,
        late_counts_for_pass: Optional[bool] = None,
    ) -> ScoreResult:
        selected = list(rule.selected_metrics or [])
        if len(selected) < rule.n_required:
            logger.warning(
                "Scoring rule %s requires %s hits but selects only %s metrics; it can never pass",
                rule.rule_id, rule.n_required, len(selected),
            )

        targets = {}
        values = {}
        for key in selected:
            targets[key] = await self.resolve_target(record.agency_id, record.team_member_id, key)
            values[key] = metric_value(record, key)

        if late_counts_for_pass is None:
            late_counts_for_pass = await self.late_counts_for_pass(record) if record.is_late else False

        result = evaluate(
            values,
            selected,
            rule.weights,
            targets,
            rule.n_required,
            is_late=record.is_late,
            late_counts_for_pass=late_counts_for_pass,
        )
        record.hits = result.hits
        record.daily_score = round(result.score, 2)
        record.passed = result.passed
        return result
