# scorecard/crud/households.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func, exists, and_, or_, true
from typing import List, Optional
from uuid import UUID
from datetime import date

from scorecard.models import Household, HouseholdQuote, HouseholdSale, HouseholdStatusChange


def _agency_filter(column, agency_id: Optional[UUID]):
    return column == agency_id if agency_id is not None else true()


# ---------------- HOUSEHOLDS ----------------
async def get_household(db: AsyncSession, household_id: UUID) -> Optional[Household]:
    result = await db.execute(select(Household).where(Household.household_id == household_id))
    return result.scalar_one_or_none()


async def get_household_by_key(db: AsyncSession, agency_id: UUID, household_key: str) -> Optional[Household]:
    result = await db.execute(
        select(Household).where(
            Household.agency_id == agency_id,
            Household.household_key == household_key,
        )
    )
    return result.scalar_one_or_none()


async def create_household(db: AsyncSession, **fields) -> Household:
    household = Household(**fields)
    db.add(household)
    await db.flush()
    return household


async def delete_household(db: AsyncSession, household_id: UUID) -> bool:
    await db.execute(delete(HouseholdStatusChange).where(HouseholdStatusChange.household_id == household_id))
    result = await db.execute(delete(Household).where(Household.household_id == household_id))
    return (result.rowcount or 0) > 0


# ---------------- FACTS ----------------
async def find_duplicate_quote(
    db: AsyncSession,
    household_id: UUID,
    source: str,
    source_reference_id: Optional[str],
    quote_date: date,
    product_type: str,
) -> Optional[HouseholdQuote]:
    same_shape = and_(HouseholdQuote.quote_date == quote_date, HouseholdQuote.product_type == product_type)
    if source_reference_id:
        match = or_(HouseholdQuote.source_reference_id == source_reference_id, same_shape)
    else:
        match = same_shape
    result = await db.execute(
        select(HouseholdQuote)
        .where(HouseholdQuote.household_id == household_id, HouseholdQuote.source == source, match)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def find_duplicate_sale(
    db: AsyncSession,
    household_id: UUID,
    source: str,
    source_reference_id: Optional[str],
    sale_date: date,
    product_type: str,
) -> Optional[HouseholdSale]:
    same_shape = and_(HouseholdSale.sale_date == sale_date, HouseholdSale.product_type == product_type)
    if source_reference_id:
        match = or_(HouseholdSale.source_reference_id == source_reference_id, same_shape)
    else:
        match = same_shape
    result = await db.execute(
        select(HouseholdSale)
        .where(HouseholdSale.household_id == household_id, HouseholdSale.source == source, match)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_quote(db: AsyncSession, **fields) -> HouseholdQuote:
    quote = HouseholdQuote(**fields)
    db.add(quote)
    await db.flush()
    return quote


async def create_sale(db: AsyncSession, **fields) -> HouseholdSale:
    sale = HouseholdSale(**fields)
    db.add(sale)
    await db.flush()
    return sale


async def get_quotes(db: AsyncSession, household_id: UUID) -> List[HouseholdQuote]:
    result = await db.execute(
        select(HouseholdQuote)
        .where(HouseholdQuote.household_id == household_id)
        .order_by(HouseholdQuote.quote_date.asc())
    )
    return list(result.scalars().all())


async def get_sales(db: AsyncSession, household_id: UUID) -> List[HouseholdSale]:
    result = await db.execute(
        select(HouseholdSale)
        .where(HouseholdSale.household_id == household_id)
        .order_by(HouseholdSale.sale_date.asc())
    )
    return list(result.scalars().all())


# ---------------- STATUS HISTORY ----------------
async def create_status_change(
    db: AsyncSession,
    household_id: UUID,
    previous_status: Optional[str],
    new_status: str,
    reason: str,
    changed_by: Optional[UUID] = None,
    notes: Optional[str] = None,
) -> HouseholdStatusChange:
    change = HouseholdStatusChange(
        household_id=household_id,
        previous_status=previous_status,
        new_status=new_status,
        reason=reason,
        changed_by=changed_by,
        notes=notes,
    )
    db.add(change)
    await db.flush()
    return change


async def get_status_history(db: AsyncSession, household_id: UUID) -> List[HouseholdStatusChange]:
    result = await db.execute(
        select(HouseholdStatusChange)
        .where(HouseholdStatusChange.household_id == household_id)
        .order_by(HouseholdStatusChange.changed_at.asc())
    )
    return list(result.scalars().all())


# ---------------- RECONCILIATION QUERIES ----------------
async def get_leads_with_quotes(db: AsyncSession, agency_id: Optional[UUID] = None):
    """(household, earliest quote date) for households still in `lead` despite linked quotes."""
    earliest = (
        select(HouseholdQuote.household_id, func.min(HouseholdQuote.quote_date).label("first_quote"))
        .group_by(HouseholdQuote.household_id)
        .subquery()
    )
    result = await db.execute(
        select(Household, earliest.c.first_quote)
        .join(earliest, earliest.c.household_id == Household.household_id)
        .where(Household.status == "lead", _agency_filter(Household.agency_id, agency_id))
    )
    return list(result.all())


async def get_unsold_with_sales(db: AsyncSession, agency_id: Optional[UUID] = None):
    """(household, earliest sale date) for households not yet `sold` despite linked sales."""
    earliest = (
        select(HouseholdSale.household_id, func.min(HouseholdSale.sale_date).label("first_sale"))
        .group_by(HouseholdSale.household_id)
        .subquery()
    )
    result = await db.execute(
        select(Household, earliest.c.first_sale)
        .join(earliest, earliest.c.household_id == Household.household_id)
        .where(Household.status != "sold", _agency_filter(Household.agency_id, agency_id))
    )
    return list(result.all())


async def get_ghost_households(db: AsyncSession, agency_id: Optional[UUID] = None) -> List[Household]:
    """`lead` households with no facts that were never registered as a real lead."""
    has_quote = exists().where(HouseholdQuote.household_id == Household.household_id)
    has_sale = exists().where(HouseholdSale.household_id == Household.household_id)
    result = await db.execute(
        select(Household).where(
            Household.status == "lead",
            Household.lead_received_date.is_(None),
            ~has_quote,
            ~has_sale,
            _agency_filter(Household.agency_id, agency_id),
        )
    )
    return list(result.scalars().all())


async def count_quoted_households_by_member_day(
    db: AsyncSession, agency_id: UUID, start: date, end: date
):
    """(team_member_id, first_quote_date, households) for quoted or sold households in range."""
    result = await db.execute(
        select(
            Household.team_member_id,
            Household.first_quote_date,
            func.count(func.distinct(Household.household_id)),
        )
        .where(
            Household.agency_id == agency_id,
            Household.status.in_(("quoted", "sold")),
            Household.team_member_id.is_not(None),
            Household.first_quote_date >= start,
            Household.first_quote_date <= end,
        )
        .group_by(Household.team_member_id, Household.first_quote_date)
    )
    return list(result.all())
