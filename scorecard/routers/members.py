from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date, timedelta
from typing import Optional
from uuid import UUID
import logging
import traceback

from scorecard.db.session import get_db
from scorecard.db.redis_client import get_redis
from scorecard.schemas.metrics import MemberMetricsResponse, StreakResponse
from scorecard.services.metrics_query import MetricsQueryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/members", tags=["Members"])


@router.get(
    "/{team_member_id}/metrics",
    response_model=MemberMetricsResponse,
    summary="Daily metrics for a team member",
    description="Returns the member's daily metric rows between start and end (default: last 30 days).",
)
async def get_member_metrics(
    team_member_id: UUID,
    start: Optional[date] = Query(None, description="First day, inclusive"),
    end: Optional[date] = Query(None, description="Last day, inclusive"),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    end = end or date.today()
    start = start or end - timedelta(days=30)
    try:
        return await MetricsQueryService.get_member_metrics(team_member_id, start, end, db, redis)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Error in get_member_metrics: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post(
    "/{team_member_id}/streak/recompute",
    response_model=StreakResponse,
    summary="Recompute a member's streak",
)
async def recompute_streak(
    team_member_id: UUID,
    as_of: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    try:
        return await MetricsQueryService.recompute_streak(team_member_id, as_of or date.today(), db, redis)
    except Exception as e:
        logger.error("Error in recompute_streak: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")
