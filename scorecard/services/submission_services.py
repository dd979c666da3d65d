import logging
from datetime import date, datetime, timedelta
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from scorecard.core.config import get_settings
from scorecard.crud import reference as crud_reference
from scorecard.crud import submissions as crud_submissions
from scorecard.schemas.household import HouseholdIdentity, QuoteFactRequest
from scorecard.schemas.metrics import BatchSummary
from scorecard.schemas.submission import ProcessingResult, SubmissionCreateRequest
from scorecard.services.audit_log import AuditLog
from scorecard.services.field_extraction import FieldExtractionResolver
from scorecard.services.household_lifecycle import HouseholdLifecycle
from scorecard.services.metrics_upsert import MetricsUpsertEngine
from scorecard.services.quoted_details import QuotedDetailsFlattener

logger = logging.getLogger(__name__)


class SubmissionProcessor:
    """
        Runs a final scorecard submission through the aggregation pipeline.

        Workflow:
        1. Load the submission, its form and its team member. Drafts and
           submissions on unpublished forms are skipped.
        2. Extract canonical metrics from the payload (`FieldExtractionResolver`).
        3. Merge them into the member's DailyMetric for the effective date
           (`MetricsUpsertEngine`), which also rescores and refreshes the streak.
        4. Flatten the repeated quoted-household section (`QuotedDetailsFlattener`).
        5. Write the extraction audit (`AuditLog`) and commit.
        6. Sync each flattened row with a name and zip into the household
           pipeline as a `scorecard` quote. The scorecard already counted these
           quotes, so the increment is skipped. Each row commits on its own; a
           failing row is rolled back, logged and counted.

        Re-processing the same submission is safe: the merge converges, the
        detail rows are replaced and the household quotes dedupe.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.metrics = MetricsUpsertEngine(db)
        self.flattener = QuotedDetailsFlattener(db)
        self.audit = AuditLog(db)

    async def process(self, submission_id: UUID) -> ProcessingResult:
        submission = await crud_submissions.get_submission(self.db, submission_id)
        if submission is None:
            raise LookupError(f"Submission {submission_id} not found")
        if not submission.final:
            return ProcessingResult(submission_id=submission_id, processed=False, skipped_reason="not_final")

        form = await crud_reference.get_form_template(self.db, submission.form_template_id)
        if form is None or form.status != "published":
            logger.info("Submission %s skipped: form %s is not published", submission_id, submission.form_template_id)
            return ProcessingResult(submission_id=submission_id, processed=False, skipped_reason="form_not_published")

        member = await crud_reference.get_team_member(self.db, submission.team_member_id)
        if member is None:
            raise LookupError(f"Team member {submission.team_member_id} not found")

        agency_id = member.agency_id
        role = form.role if member.role == "Hybrid" else member.role
        work_date = submission.effective_date

        # 1. --- Extract ---
        resolver = FieldExtractionResolver(form.field_mappings, form.kpi_fields)
        extraction = resolver.extract(submission.payload_json)

        # 2. --- Merge ---
        record = await self.metrics.merge(
            agency_id=agency_id,
            team_member_id=member.team_member_id,
            metric_date=work_date,
            role=role,
            values=extraction.record_fields(),
            form_template_id=form.form_template_id,
            is_late=submission.late,
            final_submission_id=submission.submission_id,
            late_counts_for_pass=form.late_counts_for_pass,
        )
        metric_id = record.metric_id if record is not None else None
        if record is not None:
            submission.metric_id = metric_id

        # 3. --- Flatten ---
        flatten = await self.flattener.flatten(submission, form, agency_id)

        # 4. --- Audit ---
        await self.audit.record_extraction(
            submission.submission_id, form.form_template_id, member.team_member_id, extraction, flatten
        )
        submission.processed_at = datetime.utcnow()

        details = await self.flattener.details(submission_id)
        rows = [
            {
                "household_name": d.household_name,
                "zip_code": d.zip_code,
                "lead_source_id": d.lead_source_id,
                "items_quoted": d.items_quoted,
                "premium_potential_cents": d.premium_potential_cents,
            }
            for d in details
        ]
        await self.db.commit()

        result = ProcessingResult(
            submission_id=submission_id,
            processed=True,
            metric_id=metric_id,
            supersedes_id=submission.supersedes_id,
            quoted_details_created=flatten.records_created,
        )

        # 5. --- Household sync ---
        lifecycle = HouseholdLifecycle(self.db, metrics=self.metrics)
        for row in rows:
            if not row["household_name"] or not row["zip_code"]:
                result.households_skipped += 1
                continue
            request = QuoteFactRequest(
                identity=HouseholdIdentity(
                    agency_id=agency_id, full_name=row["household_name"], zip_code=row["zip_code"]
                ),
                team_member_id=member.team_member_id,
                lead_source_id=row["lead_source_id"],
                quote_date=work_date,
                product_type="Bundle",
                items_quoted=row["items_quoted"] or 1,
                premium_cents=row["premium_potential_cents"] or 0,
                source="scorecard",
                source_reference_id=str(submission_id),
                skip_metrics_increment=True,
            )
            try:
                await lifecycle.record_quote(request)
                await self.db.commit()
                result.households_synced += 1
            except Exception as e:
                await self.db.rollback()
                logger.warning("Submission %s: household sync failed for %r: %s", submission_id, row["household_name"], e)
                result.households_failed += 1

        return result


class SubmissionServices:

    @staticmethod
    async def submit_scorecard_service(request: SubmissionCreateRequest, db: AsyncSession) -> ProcessingResult:
        """
        Store a scorecard submission and, when final, process it.

        A final submission supersedes earlier finals for the same form, member
        and effective date: they stay in the table for audit with
        `final=false` and `superseded_at` set, and the new row points at the
        most recent of them through `supersedes_id`.

        Raises:
            LookupError: unknown form template or team member.
        """
        form = await crud_reference.get_form_template(db, request.form_template_id)
        if form is None:
            raise LookupError(f"Form template {request.form_template_id} not found")
        member = await crud_reference.get_team_member(db, request.team_member_id)
        if member is None:
            raise LookupError(f"Team member {request.team_member_id} not found")
        if member.agency_id != form.agency_id:
            raise ValueError("Team member and form template belong to different agencies")

        effective = request.work_date or request.submission_date
        supersedes_id = None
        if request.final:
            previous = await crud_submissions.get_final_submissions_for_day(
                db, request.form_template_id, request.team_member_id, effective
            )
            now = datetime.utcnow()
            for old in previous:
                old.final = False
                old.superseded_at = now
            if previous:
                supersedes_id = previous[0].submission_id

        submission = await crud_submissions.create_submission(
            db,
            submission_id=uuid4(),
            form_template_id=request.form_template_id,
            team_member_id=request.team_member_id,
            submission_date=request.submission_date,
            work_date=request.work_date,
            payload_json=request.payload,
            late=request.late,
            final=request.final,
            supersedes_id=supersedes_id,
        )
        submission_id = submission.submission_id
        await db.commit()

        return await SubmissionProcessor(db).process(submission_id)

    @staticmethod
    async def backfill_metrics_service(agency_id: UUID, days: Optional[int], db: AsyncSession) -> BatchSummary:
        """Reprocess every final submission whose effective date falls in the last `days` days."""
        days = days or get_settings().default_backfill_days
        end = date.today()
        start = end - timedelta(days=days)
        submissions = await crud_submissions.get_final_submissions_in_window(db, agency_id, start, end)
        submission_ids: List[UUID] = [s.submission_id for s in submissions]

        summary = BatchSummary()
        processor = SubmissionProcessor(db)
        for submission_id in submission_ids:
            try:
                result = await processor.process(submission_id)
            except Exception as e:
                await db.rollback()
                logger.error("Backfill failed for submission %s: %s", submission_id, e)
                summary.errors += 1
                continue
            if result.processed:
                summary.processed += 1
            else:
                summary.skipped += 1
        logger.info("Backfilled agency %s from %s: %s", agency_id, start, summary.model_dump())
        return summary
