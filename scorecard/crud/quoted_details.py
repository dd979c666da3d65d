# scorecard/crud/quoted_details.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from typing import List
from uuid import UUID

from scorecard.models.quoted_household_detail import QuotedHouseholdDetail


# ---------------- CREATE ----------------
async def create_detail(db: AsyncSession, **fields) -> QuotedHouseholdDetail:
    detail = QuotedHouseholdDetail(**fields)
    db.add(detail)
    await db.flush()
    return detail


# ---------------- READ ----------------
async def get_details_by_submission(db: AsyncSession, submission_id: UUID) -> List[QuotedHouseholdDetail]:
    result = await db.execute(
        select(QuotedHouseholdDetail)
        .where(QuotedHouseholdDetail.submission_id == submission_id)
        .order_by(QuotedHouseholdDetail.row_index.asc())
    )
    return list(result.scalars().all())


# ---------------- DELETE ----------------
async def delete_details_by_submission(db: AsyncSession, submission_id: UUID) -> int:
    result = await db.execute(
        delete(QuotedHouseholdDetail).where(QuotedHouseholdDetail.submission_id == submission_id)
    )
    return result.rowcount or 0
