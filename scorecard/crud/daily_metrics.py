# scorecard/crud/daily_metrics.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional
from uuid import UUID
from datetime import date

from scorecard.models.daily_metric import DailyMetric


# ---------------- CREATE ----------------
async def create_metric(db: AsyncSession, **fields) -> DailyMetric:
    metric = DailyMetric(**fields)
    db.add(metric)
    await db.flush()
    return metric


# ---------------- READ ----------------
async def get_metric(db: AsyncSession, metric_id: UUID) -> Optional[DailyMetric]:
    result = await db.execute(select(DailyMetric).where(DailyMetric.metric_id == metric_id))
    return result.scalar_one_or_none()


async def get_metric_by_member_and_date(
    db: AsyncSession, team_member_id: UUID, metric_date: date, for_update: bool = False
) -> Optional[DailyMetric]:
    stmt = select(DailyMetric).where(
        DailyMetric.team_member_id == team_member_id,
        DailyMetric.date == metric_date,
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_metrics_in_range(
    db: AsyncSession, team_member_id: UUID, start: date, end: date
) -> List[DailyMetric]:
    result = await db.execute(
        select(DailyMetric)
        .where(
            DailyMetric.team_member_id == team_member_id,
            DailyMetric.date >= start,
            DailyMetric.date <= end,
        )
        .order_by(DailyMetric.date.asc())
    )
    return list(result.scalars().all())


async def get_agency_metrics_in_range(
    db: AsyncSession, agency_id: UUID, start: date, end: date
) -> List[DailyMetric]:
    result = await db.execute(
        select(DailyMetric)
        .where(
            DailyMetric.agency_id == agency_id,
            DailyMetric.date >= start,
            DailyMetric.date <= end,
        )
        .order_by(DailyMetric.team_member_id, DailyMetric.date.asc())
    )
    return list(result.scalars().all())
