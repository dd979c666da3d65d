from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from uuid import UUID
import logging
import traceback

from scorecard.db.session import get_db
from scorecard.db.redis_client import get_redis
from scorecard.schemas.metrics import BackfillRequest, BatchSummary, DateRangeRequest, ReconciliationSummary
from scorecard.services.metrics_query import MetricsQueryService
from scorecard.services.metrics_upsert import MetricsUpsertEngine
from scorecard.services.reconciliation import HouseholdReconciliation
from scorecard.services.submission_services import SubmissionServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


@router.post(
    "/reconcile",
    response_model=ReconciliationSummary,
    summary="Reconcile household status with linked facts",
    description="Promotes stale leads/quotes that already have facts and deletes ghost households.",
)
async def reconcile_households(
    agency_id: Optional[UUID] = Query(None, description="Limit the sweep to one agency"),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await HouseholdReconciliation(db).run(agency_id)
    except Exception as e:
        logger.error("Error in reconcile_households: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post(
    "/backfill-metrics",
    response_model=BatchSummary,
    summary="Reprocess recent final submissions",
)
async def backfill_metrics(
    request: BackfillRequest,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    try:
        summary = await SubmissionServices.backfill_metrics_service(request.agency_id, request.days, db)
        await MetricsQueryService.invalidate(redis)
        return summary
    except Exception as e:
        logger.error("Error in backfill_metrics: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post(
    "/backfill-quoted-counts",
    response_model=BatchSummary,
    summary="Raise quoted counts to the households first quoted each day",
)
async def backfill_quoted_counts(
    request: DateRangeRequest,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    try:
        if request.start > request.end:
            raise ValueError("start must be on or before end")
        summary = await HouseholdReconciliation(db).backfill_quoted_counts(request.agency_id, request.start, request.end)
        await MetricsQueryService.invalidate(redis)
        return summary
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Error in backfill_quoted_counts: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post(
    "/rescore",
    response_model=BatchSummary,
    summary="Rescore a date range with the current rules",
)
async def rescore(
    request: DateRangeRequest,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    try:
        if request.start > request.end:
            raise ValueError("start must be on or before end")
        count = await MetricsUpsertEngine(db).rescore(request.agency_id, request.start, request.end)
        await db.commit()
        await MetricsQueryService.invalidate(redis)
        return BatchSummary(processed=count)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Error in rescore: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")
