from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

HouseholdStatus = Literal["lead", "quoted", "sold"]
QuoteSource = Literal["allstate_report", "scorecard", "manual", "bulk_upload", "call_center"]
SaleSource = Literal["sales_dashboard", "scorecard", "manual", "call_center"]


# --- Identity ---
class HouseholdIdentity(BaseModel):
    agency_id: UUID
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None  # "First Last", used when the parts are not given
    zip_code: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    @model_validator(mode="after")
    def _require_a_name(self):
        if not (self.first_name or self.last_name or self.full_name):
            raise ValueError("first_name/last_name or full_name is required")
        return self


class Attribution(BaseModel):
    team_member_id: Optional[UUID] = None
    lead_source_id: Optional[UUID] = None


# --- Requests ---
class LeadCreateRequest(Attribution):
    identity: HouseholdIdentity
    lead_received_date: Optional[date] = None
    notes: Optional[str] = None


class QuoteFactRequest(Attribution):
    identity: HouseholdIdentity
    quote_date: date
    product_type: str
    items_quoted: int = Field(default=1, ge=0)
    premium_cents: int = Field(default=0, ge=0)
    source: QuoteSource
    source_reference_id: Optional[str] = None
    skip_metrics_increment: bool = False


class SaleFactRequest(Attribution):
    identity: HouseholdIdentity
    sale_date: date
    product_type: str
    items_sold: int = Field(default=1, ge=0)
    policies_sold: int = Field(default=1, ge=0)
    premium_cents: int = Field(default=0, ge=0)
    policy_number: Optional[str] = None
    source: SaleSource
    source_reference_id: Optional[str] = None
    linked_quote_id: Optional[UUID] = None


class WinbackSignalRequest(BaseModel):
    household_id: UUID
    outcome: Literal["won_back", "moved_to_quoted"]
    effective_date: Optional[date] = None
    changed_by: Optional[UUID] = None


class RenewalSignalRequest(BaseModel):
    household_id: UUID
    outcome: Literal["success", "unsuccessful"]
    renewal_effective_date: Optional[date] = None
    changed_by: Optional[UUID] = None


class StatusCorrectionRequest(BaseModel):
    status: HouseholdStatus
    reason: str
    changed_by: Optional[UUID] = None


# --- Responses ---
class HouseholdResponse(BaseModel):
    household_id: UUID
    agency_id: UUID
    household_key: str
    first_name: str
    last_name: str
    zip_code: Optional[str]
    status: HouseholdStatus
    lead_received_date: Optional[date]
    first_quote_date: Optional[date]
    sold_date: Optional[date]
    team_member_id: Optional[UUID]
    lead_source_id: Optional[UUID]
    needs_attention: bool

    model_config = {"from_attributes": True}


class QuoteResponse(BaseModel):
    quote_id: UUID
    quote_date: date
    product_type: str
    items_quoted: int
    premium_cents: int
    source: str
    source_reference_id: Optional[str]
    team_member_id: Optional[UUID]

    model_config = {"from_attributes": True}


class SaleResponse(BaseModel):
    sale_id: UUID
    sale_date: date
    product_type: str
    items_sold: int
    policies_sold: int
    premium_cents: int
    policy_number: Optional[str]
    source: str
    team_member_id: Optional[UUID]

    model_config = {"from_attributes": True}


class StatusChangeResponse(BaseModel):
    previous_status: Optional[str]
    new_status: str
    reason: str
    changed_by: Optional[UUID]
    changed_at: Optional[datetime]
    notes: Optional[str]

    model_config = {"from_attributes": True}


class FactIngestionResponse(BaseModel):
    success: bool
    household: HouseholdResponse
    fact_id: Optional[UUID]
    duplicate: bool = False
    household_created: bool = False
    previous_status: HouseholdStatus
    metrics_incremented: bool = False


class HouseholdDetailResponse(BaseModel):
    household: HouseholdResponse
    quotes: List[QuoteResponse]
    sales: List[SaleResponse]
    history: List[StatusChangeResponse]
