from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID
import logging
import traceback

from scorecard.crud import extraction_audits as crud_audits
from scorecard.crud import quoted_details as crud_details
from scorecard.db.session import get_db
from scorecard.db.redis_client import get_redis
from scorecard.schemas.submission import (
    ExtractionAuditResponse,
    ProcessingResult,
    QuotedDetailResponse,
    SubmissionCreateRequest,
)
from scorecard.services.metrics_query import MetricsQueryService
from scorecard.services.submission_services import SubmissionProcessor, SubmissionServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/submissions", tags=["Submissions"])


@router.post(
    "",
    response_model=ProcessingResult,
    status_code=201,
    summary="Submit a daily scorecard",
    description="Stores the submission, supersedes earlier finals for the same day and runs final submissions through metrics, quoted details and households.",
)
async def submit_scorecard(
    request: SubmissionCreateRequest,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    try:
        result = await SubmissionServices.submit_scorecard_service(request, db)
        if result.processed:
            await MetricsQueryService.invalidate(redis)
        return result
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error("Error in submit_scorecard: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post(
    "/{submission_id}/process",
    response_model=ProcessingResult,
    summary="Reprocess a submission",
    description="Re-runs extraction, merge and flattening for one submission. Safe to repeat.",
)
async def process_submission(
    submission_id: UUID,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    try:
        result = await SubmissionProcessor(db).process(submission_id)
        if result.processed:
            await MetricsQueryService.invalidate(redis)
        return result
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Error in process_submission: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.get(
    "/{submission_id}/audits",
    response_model=List[ExtractionAuditResponse],
    summary="Extraction audit records for a submission",
)
async def get_submission_audits(submission_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await crud_audits.get_audits_by_submission(db, submission_id)
    except Exception as e:
        logger.error("Error in get_submission_audits: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.get(
    "/{submission_id}/quoted-details",
    response_model=List[QuotedDetailResponse],
    summary="Flattened quoted-household rows for a submission",
)
async def get_quoted_details(submission_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await crud_details.get_details_by_submission(db, submission_id)
    except Exception as e:
        logger.error("Error in get_quoted_details: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")
