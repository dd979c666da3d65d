import logging
from typing import Awaitable, Callable
from uuid import UUID

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from scorecard.crud import households as crud_households
from scorecard.schemas.household import (
    FactIngestionResponse,
    HouseholdDetailResponse,
    HouseholdResponse,
    LeadCreateRequest,
    QuoteFactRequest,
    QuoteResponse,
    RenewalSignalRequest,
    SaleFactRequest,
    SaleResponse,
    StatusChangeResponse,
    StatusCorrectionRequest,
    WinbackSignalRequest,
)
from scorecard.services.household_lifecycle import HouseholdLifecycle, IngestionOutcome
from scorecard.services.metrics_query import MetricsQueryService

logger = logging.getLogger(__name__)


class HouseholdServices:
    """
        Transaction boundary around `HouseholdLifecycle` for the HTTP layer.

        Every call commits on success and rolls back on any error, so a
        household created for a fact that then failed is never persisted.
        When a promotion credited a quoted count the metrics cache is
        invalidated.
    """

    @staticmethod
    async def _run(
        db: AsyncSession,
        redis: Redis,
        operation: Callable[[HouseholdLifecycle], Awaitable[IngestionOutcome]],
    ) -> FactIngestionResponse:
        lifecycle = HouseholdLifecycle(db)
        try:
            outcome = await operation(lifecycle)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if outcome.metrics_incremented:
            await MetricsQueryService.invalidate(redis)

        return FactIngestionResponse(
            success=True,
            household=HouseholdResponse.model_validate(outcome.household),
            fact_id=outcome.fact_id,
            duplicate=outcome.duplicate,
            household_created=outcome.household_created,
            previous_status=outcome.previous_status,
            metrics_incremented=outcome.metrics_incremented,
        )

    @staticmethod
    async def register_lead_service(request: LeadCreateRequest, db: AsyncSession, redis: Redis) -> FactIngestionResponse:
        return await HouseholdServices._run(db, redis, lambda lc: lc.register_lead(request))

    @staticmethod
    async def record_quote_service(request: QuoteFactRequest, db: AsyncSession, redis: Redis) -> FactIngestionResponse:
        return await HouseholdServices._run(db, redis, lambda lc: lc.record_quote(request))

    @staticmethod
    async def record_sale_service(request: SaleFactRequest, db: AsyncSession, redis: Redis) -> FactIngestionResponse:
        return await HouseholdServices._run(db, redis, lambda lc: lc.record_sale(request))

    @staticmethod
    async def winback_signal_service(request: WinbackSignalRequest, db: AsyncSession, redis: Redis) -> FactIngestionResponse:
        return await HouseholdServices._run(db, redis, lambda lc: lc.apply_winback(request))

    @staticmethod
    async def renewal_signal_service(request: RenewalSignalRequest, db: AsyncSession, redis: Redis) -> FactIngestionResponse:
        return await HouseholdServices._run(db, redis, lambda lc: lc.apply_renewal(request))

    @staticmethod
    async def correct_status_service(
        household_id: UUID, request: StatusCorrectionRequest, db: AsyncSession, redis: Redis
    ) -> FactIngestionResponse:
        return await HouseholdServices._run(db, redis, lambda lc: lc.correct_status(household_id, request))

    @staticmethod
    async def get_household_service(household_id: UUID, db: AsyncSession) -> HouseholdDetailResponse:
        household = await crud_households.get_household(db, household_id)
        if household is None:
            raise LookupError(f"Household {household_id} not found")
        quotes = await crud_households.get_quotes(db, household_id)
        sales = await crud_households.get_sales(db, household_id)
        history = await crud_households.get_status_history(db, household_id)
        return HouseholdDetailResponse(
            household=HouseholdResponse.model_validate(household),
            quotes=[QuoteResponse.model_validate(q) for q in quotes],
            sales=[SaleResponse.model_validate(s) for s in sales],
            history=[StatusChangeResponse.model_validate(h) for h in history],
        )
