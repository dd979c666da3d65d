# scorecard/crud/reference.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Optional
from uuid import UUID

from scorecard.models import TeamMember, FormTemplate, LeadSource


# ---------------- TEAM MEMBERS ----------------
async def get_team_member(db: AsyncSession, team_member_id: UUID) -> Optional[TeamMember]:
    result = await db.execute(select(TeamMember).where(TeamMember.team_member_id == team_member_id))
    return result.scalar_one_or_none()


# ---------------- FORM TEMPLATES ----------------
async def get_form_template(db: AsyncSession, form_template_id: UUID) -> Optional[FormTemplate]:
    result = await db.execute(select(FormTemplate).where(FormTemplate.form_template_id == form_template_id))
    return result.scalar_one_or_none()


# ---------------- LEAD SOURCES ----------------
async def get_lead_source(db: AsyncSession, agency_id: UUID, lead_source_id: UUID) -> Optional[LeadSource]:
    result = await db.execute(
        select(LeadSource).where(
            LeadSource.agency_id == agency_id,
            LeadSource.lead_source_id == lead_source_id,
        )
    )
    return result.scalar_one_or_none()


async def get_lead_source_by_name(db: AsyncSession, agency_id: UUID, name: str) -> Optional[LeadSource]:
    result = await db.execute(
        select(LeadSource).where(
            LeadSource.agency_id == agency_id,
            func.lower(LeadSource.name) == name.strip().lower(),
        )
    )
    return result.scalar_one_or_none()
