from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID
import logging
import traceback

from scorecard.db.session import get_db
from scorecard.db.redis_client import get_redis
from scorecard.schemas.household import (
    FactIngestionResponse,
    HouseholdDetailResponse,
    LeadCreateRequest,
    QuoteFactRequest,
    RenewalSignalRequest,
    SaleFactRequest,
    StatusCorrectionRequest,
    WinbackSignalRequest,
)
from scorecard.services.household_services import HouseholdServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/households", tags=["Households"])


@router.post(
    "/leads",
    response_model=FactIngestionResponse,
    status_code=201,
    summary="Register a lead",
    description="Manual add or marketing import. Merges into an existing household with the same name and zip.",
)
async def register_lead(
    request: LeadCreateRequest,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    try:
        return await HouseholdServices.register_lead_service(request, db, redis)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Error in register_lead: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post(
    "/quotes",
    response_model=FactIngestionResponse,
    status_code=201,
    summary="Record a quote fact",
    description="Stores a quote for the household (creating or merging it) and promotes lead to quoted.",
)
async def record_quote(
    request: QuoteFactRequest,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    try:
        return await HouseholdServices.record_quote_service(request, db, redis)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error("Error in record_quote: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post(
    "/sales",
    response_model=FactIngestionResponse,
    status_code=201,
    summary="Record a sale fact",
    description="Stores a sale for the household (creating or merging it) and promotes it to sold.",
)
async def record_sale(
    request: SaleFactRequest,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    try:
        return await HouseholdServices.record_sale_service(request, db, redis)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error("Error in record_sale: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post(
    "/signals/winback",
    response_model=FactIngestionResponse,
    summary="Apply a win-back outcome",
)
async def winback_signal(
    request: WinbackSignalRequest,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    try:
        return await HouseholdServices.winback_signal_service(request, db, redis)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Error in winback_signal: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post(
    "/signals/renewal",
    response_model=FactIngestionResponse,
    summary="Apply a renewal outcome",
)
async def renewal_signal(
    request: RenewalSignalRequest,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    try:
        return await HouseholdServices.renewal_signal_service(request, db, redis)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Error in renewal_signal: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.get(
    "/{household_id}",
    response_model=HouseholdDetailResponse,
    summary="Household with its facts and status history",
)
async def get_household(household_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await HouseholdServices.get_household_service(household_id, db)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error("Error in get_household: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post(
    "/{household_id}/correct-status",
    response_model=FactIngestionResponse,
    summary="Administrative status correction",
    description="The only operation allowed to move a household's status backward.",
)
async def correct_status(
    household_id: UUID,
    request: StatusCorrectionRequest,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    try:
        return await HouseholdServices.correct_status_service(household_id, request, db, redis)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Error in correct_status: %s\n%s", e, traceback.format_exc())
        raise HTTPException(status_code=500, detail="Internal Server Error")
