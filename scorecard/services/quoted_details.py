import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from scorecard.crud import quoted_details as crud_details
from scorecard.crud import reference as crud_reference
from scorecard.models import FormTemplate, QuotedHouseholdDetail, Submission
from scorecard.services.field_extraction import CoercionError, coerce_number, is_blank, to_cents, to_int

logger = logging.getLogger(__name__)

NAME_KEYS = ("prospect_name", "household_name", "name")
NOTES_KEYS = ("detailed_notes", "notes")


@dataclass
class FlattenResult:
    success: bool = True
    records_created: int = 0
    rows_skipped: int = 0
    rows_failed: int = 0
    error_message: Optional[str] = None


def quoted_rows(payload: Optional[Dict[str, Any]]) -> Any:
    """The repeated section, accepting the camelCase spelling older forms post."""
    payload = payload or {}
    if "quoted_details" in payload:
        return payload["quoted_details"]
    return payload.get("quotedDetails")


def custom_field_definitions(form: Optional[FormTemplate]) -> Dict[str, Dict[str, Any]]:
    definitions: Dict[str, Dict[str, Any]] = {}
    if form is None:
        return definitions
    for source in (form.custom_fields, form.repeater_fields):
        for entry in source or []:
            if isinstance(entry, dict) and entry.get("key"):
                definitions[entry["key"]] = {"label": entry.get("label") or entry["key"], "type": entry.get("type")}
    return definitions


def _optional_number(row: Dict[str, Any], key: str) -> Optional[int]:
    value = coerce_number(row.get(key))
    if value is None:
        return None
    return to_int(value) or None


def _premium_cents(row: Dict[str, Any]) -> Optional[int]:
    cents = _optional_number(row, "premium_potential_cents")
    if cents is not None:
        return cents
    dollars = coerce_number(row.get("premium_potential"))
    return (to_cents(dollars) or None) if dollars is not None else None


class QuotedDetailsFlattener:
    """
        Explodes a submission's `quoted_details` section into detail rows.

        Re-runnable: rows owned by the submission are deleted before the
        section is re-inserted. A row that fails coercion is logged, counted
        and skipped; the rest of the section still lands.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _lead_source(
        self, agency_id: UUID, row: Dict[str, Any]
    ) -> Tuple[Optional[UUID], Optional[str]]:
        """Prefer the label literal; look the label up from the id only when it is missing."""
        label = row.get("lead_source_label") or row.get("lead_source")
        label = label.strip() if isinstance(label, str) and label.strip() else None
        raw_id = row.get("lead_source_id")
        source_id = None
        if not is_blank(raw_id):
            try:
                source_id = UUID(str(raw_id))
            except ValueError:
                logger.warning("Ignoring malformed lead_source_id %r", raw_id)

        if label is None and source_id is not None:
            source = await crud_reference.get_lead_source(self.db, agency_id, source_id)
            if source is not None:
                label = source.name
        elif label is not None and source_id is None:
            source = await crud_reference.get_lead_source_by_name(self.db, agency_id, label)
            if source is not None:
                source_id = source.lead_source_id
        return source_id, label

    async def flatten(
        self, submission: Submission, form: Optional[FormTemplate], agency_id: UUID
    ) -> FlattenResult:
        # rows from an earlier version of this submission go even when the new payload has none
        deleted = await crud_details.delete_details_by_submission(self.db, submission.submission_id)
        if deleted:
            logger.info("Submission %s: replaced %d quoted detail rows", submission.submission_id, deleted)

        rows = quoted_rows(submission.payload_json)
        if rows is None:
            return FlattenResult()
        if not isinstance(rows, list):
            message = f"quoted_details is not a list ({type(rows).__name__})"
            logger.warning("Submission %s: %s", submission.submission_id, message)
            return FlattenResult(success=False, error_message=message)

        definitions = custom_field_definitions(form)
        result = FlattenResult()
        for index, row in enumerate(rows):
            try:
                fields = await self._row_fields(agency_id, row, definitions)
            except (CoercionError, TypeError, ValueError) as e:
                logger.warning("Submission %s: skipping quoted detail #%d: %s", submission.submission_id, index, e)
                result.rows_failed += 1
                continue
            if fields is None:
                result.rows_skipped += 1
                continue
            await crud_details.create_detail(
                self.db,
                detail_id=uuid4(),
                submission_id=submission.submission_id,
                agency_id=agency_id,
                team_member_id=submission.team_member_id,
                work_date=submission.effective_date,
                row_index=index,
                **fields,
            )
            result.records_created += 1
        return result

    async def _row_fields(
        self, agency_id: UUID, row: Any, definitions: Dict[str, Dict[str, Any]]
    ) -> Optional[Dict[str, Any]]:
        if not isinstance(row, dict):
            raise TypeError(f"expected an object, got {type(row).__name__}")

        name = next((str(row[k]).strip() for k in NAME_KEYS if not is_blank(row.get(k))), None)
        items = _optional_number(row, "items_quoted")
        policies = _optional_number(row, "policies_quoted")
        premium = _premium_cents(row)
        if name is None and not (items or policies or premium):
            return None

        custom_values: Dict[str, Any] = {}
        for key, definition in definitions.items():
            if is_blank(row.get(key)):
                continue
            custom_values[definition["label"]] = {
                "field_key": key,
                "field_type": definition["type"],
                "label": definition["label"],
                "value": str(row[key]),
            }

        lead_source_id, lead_source_label = await self._lead_source(agency_id, row)
        zip_code = row.get("zip_code") or row.get("zip")
        notes = next((row[k] for k in NOTES_KEYS if not is_blank(row.get(k))), None)
        return {
            "household_name": name,
            "zip_code": str(zip_code).strip() if not is_blank(zip_code) else None,
            "lead_source_id": lead_source_id,
            "lead_source_label": lead_source_label,
            "items_quoted": items,
            "policies_quoted": policies,
            "premium_potential_cents": premium,
            "extras": {
                "original_data": row,
                "custom_fields": custom_values,
                "detailed_notes": notes,
            },
        }

    async def details(self, submission_id: UUID) -> List[QuotedHouseholdDetail]:
        return await crud_details.get_details_by_submission(self.db, submission_id)
