import json
import logging
from datetime import date
from uuid import UUID

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from scorecard.core.config import get_settings
from scorecard.crud import daily_metrics as crud_metrics
from scorecard.schemas.metrics import DailyMetricResponse, MemberMetricsResponse, StreakResponse
from scorecard.services.streaks import StreakRecalculator

logger = logging.getLogger(__name__)

CACHE_VERSION_KEY = "member_metrics:version"


class MetricsQueryService:
    """
        Read side for DailyMetric ranges, cached in Redis.

        Cache keys embed a version counter that every metrics write bumps
        (`invalidate`), so a cached range is never served after the rows
        under it changed. Entries also expire after
        `metrics_cache_ttl_seconds`.
    """

    @staticmethod
    async def invalidate(redis: Redis) -> None:
        await redis.incr(CACHE_VERSION_KEY)

    @staticmethod
    async def get_member_metrics(
        team_member_id: UUID,
        start: date,
        end: date,
        db: AsyncSession,
        redis: Redis,
    ) -> MemberMetricsResponse:
        if start > end:
            raise ValueError("start must be on or before end")

        version = await redis.get(CACHE_VERSION_KEY) or "0"
        cache_key = f"member_metrics:{version}:{team_member_id}:{start.isoformat()}:{end.isoformat()}"

        # 1. --- Checking Redis cache ---
        cached = await redis.get(cache_key)
        if cached:
            return MemberMetricsResponse(**json.loads(cached))

        records = await crud_metrics.get_metrics_in_range(db, team_member_id, start, end)
        counted = [r for r in records if r.is_counted_day]
        response = MemberMetricsResponse(
            team_member_id=team_member_id,
            start=start,
            end=end,
            current_streak=counted[-1].streak_count if counted else 0,
            records=[DailyMetricResponse.model_validate(r) for r in records],
        )

        await redis.set(cache_key, response.model_dump_json(), ex=get_settings().metrics_cache_ttl_seconds)
        return response

    @staticmethod
    async def recompute_streak(team_member_id: UUID, as_of: date, db: AsyncSession, redis: Redis) -> StreakResponse:
        streak = await StreakRecalculator(db).recompute(team_member_id, as_of)
        await db.commit()
        await MetricsQueryService.invalidate(redis)
        return StreakResponse(team_member_id=team_member_id, as_of=as_of, streak=streak)
