# scorecard/crud/scoring_config.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional
from uuid import UUID, uuid4
import logging

from scorecard.models import ScoringRule, Target, KpiVersion, FormKpiBinding

logger = logging.getLogger(__name__)


# ---------------- SCORING RULES ----------------
async def get_rule(db: AsyncSession, agency_id: UUID, role: str) -> Optional[ScoringRule]:
    result = await db.execute(
        select(ScoringRule).where(ScoringRule.agency_id == agency_id, ScoringRule.role == role)
    )
    return result.scalar_one_or_none()


async def get_or_create_rule(db: AsyncSession, agency_id: UUID, role: str) -> ScoringRule:
    """Agencies without a rule for the role get one seeded with the default columns."""
    rule = await get_rule(db, agency_id, role)
    if rule is None:
        rule = ScoringRule(rule_id=uuid4(), agency_id=agency_id, role=role)
        db.add(rule)
        await db.flush()
        logger.info("Created default scoring rule for agency=%s role=%s", agency_id, role)
    return rule


# ---------------- TARGETS ----------------
async def get_target_value(
    db: AsyncSession, agency_id: UUID, team_member_id: Optional[UUID], metric_key: str
) -> Optional[float]:
    """Member-specific target if present, otherwise the agency default, otherwise None."""
    if team_member_id is not None:
        result = await db.execute(
            select(Target.value_number).where(
                Target.agency_id == agency_id,
                Target.team_member_id == team_member_id,
                Target.metric_key == metric_key,
            )
        )
        value = result.scalar_one_or_none()
        if value is not None:
            return float(value)

    result = await db.execute(
        select(Target.value_number).where(
            Target.agency_id == agency_id,
            Target.team_member_id.is_(None),
            Target.metric_key == metric_key,
        )
    )
    value = result.scalar_one_or_none()
    return float(value) if value is not None else None


# ---------------- KPI VERSIONS ----------------
async def get_active_kpi_version(db: AsyncSession, agency_id: UUID) -> Optional[KpiVersion]:
    result = await db.execute(
        select(KpiVersion)
        .where(KpiVersion.agency_id == agency_id, KpiVersion.valid_to.is_(None))
        .order_by(KpiVersion.valid_from.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_form_kpi_version(db: AsyncSession, form_template_id: UUID) -> Optional[KpiVersion]:
    result = await db.execute(
        select(KpiVersion)
        .join(FormKpiBinding, FormKpiBinding.kpi_version_id == KpiVersion.kpi_version_id)
        .where(FormKpiBinding.form_template_id == form_template_id)
        .order_by(KpiVersion.valid_from.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()
