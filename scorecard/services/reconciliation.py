import logging
from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from scorecard.crud import daily_metrics as crud_metrics
from scorecard.crud import households as crud_households
from scorecard.schemas.metrics import BatchSummary, ReconciliationSummary
from scorecard.services.household_lifecycle import transition
from scorecard.services.metrics_upsert import MetricsUpsertEngine

logger = logging.getLogger(__name__)


class HouseholdReconciliation:
    """
        Repairs household status drift from the facts alone.

        Sweeps, in order:
        1. `lead` households with quotes -> `quoted`, first_quote_date from the
           earliest quote when unset.
        2. Households below `sold` with sales -> `sold`, sold_date from the
           earliest sale when unset, attention flag cleared.
        3. Ghosts (`lead`, no quotes, no sales, never registered as a lead) are
           deleted.

        Promotions here publish no events and never touch metrics; quoted counts
        are repaired separately by `backfill_quoted_counts`, which is
        idempotent. Each household commits on its own so one bad row cannot
        abort the sweep. Running it twice changes nothing the second time.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def run(self, agency_id: Optional[UUID] = None) -> ReconciliationSummary:
        summary = ReconciliationSummary()

        # 1. --- Stale leads with quotes ---
        stale_leads = [
            (household.household_id, first_quote)
            for household, first_quote in await crud_households.get_leads_with_quotes(self.db, agency_id)
        ]
        for household_id, first_quote in stale_leads:
            try:
                household = await crud_households.get_household(self.db, household_id)
                if household is None or household.status != "lead":
                    summary.skipped += 1
                    continue
                if household.first_quote_date is None or household.first_quote_date > first_quote:
                    household.first_quote_date = first_quote
                await transition(self.db, household, "quoted", "reconciliation")
                await self.db.commit()
                summary.promoted_to_quoted += 1
                summary.processed += 1
            except Exception as e:
                await self.db.rollback()
                logger.error("Reconciliation failed promoting household %s to quoted: %s", household_id, e)
                summary.errors += 1

        # 2. --- Unsold households with sales ---
        unsold = [
            (household.household_id, first_sale)
            for household, first_sale in await crud_households.get_unsold_with_sales(self.db, agency_id)
        ]
        for household_id, first_sale in unsold:
            try:
                household = await crud_households.get_household(self.db, household_id)
                if household is None or household.status == "sold":
                    summary.skipped += 1
                    continue
                if household.sold_date is None:
                    household.sold_date = first_sale
                household.needs_attention = False
                await transition(self.db, household, "sold", "reconciliation")
                await self.db.commit()
                summary.promoted_to_sold += 1
                summary.processed += 1
            except Exception as e:
                await self.db.rollback()
                logger.error("Reconciliation failed promoting household %s to sold: %s", household_id, e)
                summary.errors += 1

        # 3. --- Ghosts ---
        ghost_ids = [household.household_id for household in await crud_households.get_ghost_households(self.db, agency_id)]
        for household_id in ghost_ids:
            try:
                await crud_households.delete_household(self.db, household_id)
                await self.db.commit()
                summary.ghosts_deleted += 1
                summary.processed += 1
            except Exception as e:
                await self.db.rollback()
                logger.error("Reconciliation failed deleting ghost household %s: %s", household_id, e)
                summary.errors += 1

        logger.info("Household reconciliation (agency=%s): %s", agency_id, summary.model_dump())
        return summary

    async def backfill_quoted_counts(self, agency_id: UUID, start: date, end: date) -> BatchSummary:
        """
        Raise each member's quoted count to the number of households first quoted that day.

        Uses the max merge, so counts already higher (scorecard totals,
        quick-adds of households not tracked here) are left alone.
        """
        summary = BatchSummary()
        engine = MetricsUpsertEngine(self.db)
        rows = await crud_households.count_quoted_households_by_member_day(self.db, agency_id, start, end)
        for team_member_id, quote_date, households in rows:
            try:
                existing = await crud_metrics.get_metric_by_member_and_date(self.db, team_member_id, quote_date)
                if existing is not None and existing.quoted_count >= households:
                    summary.skipped += 1
                    continue
                role = existing.role if existing is not None else await engine.member_role(team_member_id)
                record = await engine.merge(
                    agency_id=agency_id,
                    team_member_id=team_member_id,
                    metric_date=quote_date,
                    role=role or "Sales",
                    values={"quoted_count": households},
                )
                await self.db.commit()
                if record is None:
                    summary.skipped += 1
                else:
                    summary.processed += 1
            except Exception as e:
                await self.db.rollback()
                logger.error("Quoted count backfill failed for member %s on %s: %s", team_member_id, quote_date, e)
                summary.errors += 1
        return summary
