from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


# --- Requests ---
class SubmissionCreateRequest(BaseModel):
    form_template_id: UUID
    team_member_id: UUID
    submission_date: date
    work_date: Optional[date] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    final: bool = True
    late: bool = False


# --- Responses ---
class ProcessingResult(BaseModel):
    submission_id: UUID
    processed: bool
    skipped_reason: Optional[str] = None
    metric_id: Optional[UUID] = None
    supersedes_id: Optional[UUID] = None
    quoted_details_created: int = 0
    households_synced: int = 0
    households_skipped: int = 0
    households_failed: int = 0


class ExtractionAuditResponse(BaseModel):
    audit_id: UUID
    submission_id: UUID
    form_template_id: Optional[UUID]
    had_mapping_config: bool
    key_sources: Dict[str, str]
    extracted_values: Dict[str, Any]
    values_extracted: int
    absent_keys: List[str]
    coercion_failures: List[Dict[str, Any]]
    rows_processed: int
    rows_skipped: int
    rows_failed: int
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}


class QuotedDetailResponse(BaseModel):
    detail_id: UUID
    row_index: int
    work_date: date
    household_name: Optional[str]
    zip_code: Optional[str]
    lead_source_id: Optional[UUID]
    lead_source_label: Optional[str]
    items_quoted: Optional[int]
    policies_quoted: Optional[int]
    premium_potential_cents: Optional[int]
    extras: Optional[Dict[str, Any]]

    model_config = {"from_attributes": True}
