# scorecard/crud/extraction_audits.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List
from uuid import UUID

from scorecard.models.extraction_audit import ExtractionAudit


# ---------------- CREATE ----------------
async def create_audit(db: AsyncSession, **fields) -> ExtractionAudit:
    audit = ExtractionAudit(**fields)
    db.add(audit)
    await db.flush()
    return audit


# ---------------- READ ----------------
async def get_audits_by_submission(db: AsyncSession, submission_id: UUID) -> List[ExtractionAudit]:
    result = await db.execute(
        select(ExtractionAudit)
        .where(ExtractionAudit.submission_id == submission_id)
        .order_by(ExtractionAudit.created_at.asc())
    )
    return list(result.scalars().all())
