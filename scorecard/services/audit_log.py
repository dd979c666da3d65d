import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from scorecard.crud import extraction_audits as crud_audits
from scorecard.models import ExtractionAudit
from scorecard.services.field_extraction import ExtractionResult
from scorecard.services.quoted_details import FlattenResult

logger = logging.getLogger(__name__)


class AuditLog:
    """Writes one ExtractionAudit per processed submission. Nothing reads these back for decisions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_extraction(
        self,
        submission_id: UUID,
        form_template_id: Optional[UUID],
        team_member_id: Optional[UUID],
        extraction: ExtractionResult,
        flatten: Optional[FlattenResult] = None,
    ) -> ExtractionAudit:
        flatten = flatten or FlattenResult()
        audit = await crud_audits.create_audit(
            self.db,
            submission_id=submission_id,
            form_template_id=form_template_id,
            team_member_id=team_member_id,
            had_mapping_config=extraction.had_mapping_config,
            key_sources=dict(extraction.key_sources),
            extracted_values=extraction.record_fields(),
            values_extracted=extraction.values_extracted,
            absent_keys=list(extraction.absent_keys),
            coercion_failures=list(extraction.coercion_failures),
            rows_processed=flatten.records_created,
            rows_skipped=flatten.rows_skipped,
            rows_failed=flatten.rows_failed,
        )
        if extraction.values_extracted == 0:
            logger.warning(
                "Submission %s produced no metric values (mapping config present: %s)",
                submission_id, extraction.had_mapping_config,
            )
        return audit
