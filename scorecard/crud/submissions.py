# scorecard/crud/submissions.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import List, Optional
from uuid import UUID
from datetime import date

from scorecard.models import Submission, TeamMember, FormTemplate


# ---------------- CREATE ----------------
async def create_submission(db: AsyncSession, **fields) -> Submission:
    submission = Submission(**fields)
    db.add(submission)
    await db.flush()
    return submission


# ---------------- READ ----------------
async def get_submission(db: AsyncSession, submission_id: UUID) -> Optional[Submission]:
    result = await db.execute(select(Submission).where(Submission.submission_id == submission_id))
    return result.scalar_one_or_none()


async def get_final_submissions_for_day(
    db: AsyncSession, form_template_id: UUID, team_member_id: UUID, work_date: date
) -> List[Submission]:
    effective = func.coalesce(Submission.work_date, Submission.submission_date)
    result = await db.execute(
        select(Submission)
        .where(
            Submission.form_template_id == form_template_id,
            Submission.team_member_id == team_member_id,
            Submission.final.is_(True),
            effective == work_date,
        )
        .order_by(Submission.submitted_at.desc())
    )
    return list(result.scalars().all())


async def get_final_submissions_in_window(
    db: AsyncSession, agency_id: UUID, start: date, end: date
) -> List[Submission]:
    effective = func.coalesce(Submission.work_date, Submission.submission_date)
    result = await db.execute(
        select(Submission)
        .join(TeamMember, TeamMember.team_member_id == Submission.team_member_id)
        .join(FormTemplate, FormTemplate.form_template_id == Submission.form_template_id)
        .where(
            TeamMember.agency_id == agency_id,
            FormTemplate.status == "published",
            Submission.final.is_(True),
            effective >= start,
            effective <= end,
        )
        .order_by(effective.asc(), Submission.submitted_at.asc())
    )
    return list(result.scalars().all())
