import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from scorecard.crud import households as crud_households
from scorecard.models import Household
from scorecard.schemas.household import (
    Attribution,
    HouseholdIdentity,
    LeadCreateRequest,
    QuoteFactRequest,
    RenewalSignalRequest,
    SaleFactRequest,
    StatusCorrectionRequest,
    WinbackSignalRequest,
)
from scorecard.services.events import (
    EventBus,
    HouseholdPromoted,
    QuoteRecorded,
    RetentionSignalReceived,
    SaleRecorded,
)
from scorecard.services.metrics_upsert import MetricsUpsertEngine

logger = logging.getLogger(__name__)

STATUS_RANK = {"lead": 0, "quoted": 1, "sold": 2}

_NON_LETTERS = re.compile(r"[^A-Z]")
_WHITESPACE = re.compile(r"\s+")


# ---------------- IDENTITY ----------------
def normalize_name_part(value: Optional[str]) -> str:
    return _NON_LETTERS.sub("", (value or "").upper()) or "UNKNOWN"


def normalize_zip(value: Optional[str]) -> str:
    return _WHITESPACE.sub("", value or "")[:5] or "00000"


def household_key(first_name: Optional[str], last_name: Optional[str], zip_code: Optional[str]) -> str:
    """`LAST_FIRST_ZIP5`, e.g. ("Mary", "O'Brien", "60601-1234") -> "OBRIEN_MARY_60601"."""
    return f"{normalize_name_part(last_name)}_{normalize_name_part(first_name)}_{normalize_zip(zip_code)}"


def split_full_name(full_name: Optional[str]) -> Tuple[str, str]:
    """First token is the first name, the rest the last name; a lone token is a last name."""
    tokens = (full_name or "").split()
    if not tokens:
        return "Unknown", "Unknown"
    if len(tokens) == 1:
        return "Unknown", tokens[0]
    return tokens[0], " ".join(tokens[1:])


def identity_names(identity: HouseholdIdentity) -> Tuple[str, str]:
    if identity.first_name or identity.last_name:
        return (identity.first_name or "Unknown").strip(), (identity.last_name or "Unknown").strip()
    return split_full_name(identity.full_name)


# ---------------- EVENT HANDLERS ----------------
async def transition(
    db: AsyncSession,
    household: Household,
    new_status: str,
    reason: str,
    changed_by: Optional[UUID] = None,
    notes: Optional[str] = None,
) -> str:
    """Set the status and write the history row. Returns the previous status."""
    previous = household.status
    household.status = new_status
    await crud_households.create_status_change(
        db, household.household_id, previous, new_status, reason, changed_by=changed_by, notes=notes
    )
    logger.info("Household %s: %s -> %s (%s)", household.household_id, previous, new_status, reason)
    return previous


class HouseholdPromotionHandler:
    """
        Moves households forward in response to facts and retention signals.

        - QuoteRecorded: first_quote_date filled if unset; lead -> quoted.
        - SaleRecorded: sold_date filled if unset; anything -> sold; attention cleared.
        - Win-back `won_back` / renewal `success`: -> sold.
        - Win-back `moved_to_quoted`: lead -> quoted.

        Status never moves backward here. Every real promotion publishes
        HouseholdPromoted.
    """

    def __init__(self, db: AsyncSession, bus: EventBus):
        self.db = db
        self.bus = bus

    async def _load(self, household_id: UUID) -> Household:
        household = await crud_households.get_household(self.db, household_id)
        if household is None:
            raise LookupError(f"Household {household_id} not found")
        return household

    async def promote(
        self,
        household: Household,
        new_status: str,
        reason: str,
        changed_by: Optional[UUID] = None,
        skip_metrics_increment: bool = False,
    ) -> bool:
        if STATUS_RANK[new_status] <= STATUS_RANK[household.status]:
            return False
        previous = await transition(self.db, household, new_status, reason, changed_by=changed_by)
        await self.db.flush()
        await self.bus.publish(HouseholdPromoted(
            household_id=household.household_id,
            agency_id=household.agency_id,
            previous_status=previous,
            new_status=new_status,
            reason=reason,
            team_member_id=household.team_member_id,
            first_quote_date=household.first_quote_date,
            skip_metrics_increment=skip_metrics_increment,
        ))
        return True

    async def on_quote_recorded(self, event: QuoteRecorded) -> None:
        household = await self._load(event.household_id)
        if household.first_quote_date is None:
            household.first_quote_date = event.quote_date
        if household.team_member_id is None and event.team_member_id is not None:
            household.team_member_id = event.team_member_id
        await self.promote(household, "quoted", "quote_fact", skip_metrics_increment=event.skip_metrics_increment)

    async def on_sale_recorded(self, event: SaleRecorded) -> None:
        household = await self._load(event.household_id)
        if household.sold_date is None:
            household.sold_date = event.sale_date
        household.needs_attention = False
        await self.promote(household, "sold", "sale_fact")

    async def on_retention_signal(self, event: RetentionSignalReceived) -> None:
        household = await self._load(event.household_id)
        today = date.today()
        if event.outcome in ("won_back", "success"):
            if household.sold_date is None:
                household.sold_date = event.effective_date or today
            await self.promote(household, "sold", event.workflow, changed_by=event.changed_by)
        elif event.outcome == "moved_to_quoted":
            if household.status == "lead" and household.first_quote_date is None:
                household.first_quote_date = event.effective_date or today
            await self.promote(household, "quoted", event.workflow, changed_by=event.changed_by)
        else:
            logger.info(
                "%s outcome %s for household %s needs no status change",
                event.workflow, event.outcome, event.household_id,
            )


class QuotedCountHandler:
    """Credits the assigned member's quoted count once per lead -> quoted promotion."""

    def __init__(self, db: AsyncSession, metrics: MetricsUpsertEngine):
        self.db = db
        self.metrics = metrics
        self.credited: List[Tuple[UUID, date]] = []

    async def on_household_promoted(self, event: HouseholdPromoted) -> None:
        if event.previous_status != "lead" or event.new_status != "quoted":
            return
        if event.skip_metrics_increment:
            logger.info("Quoted count for household %s already accounted for; not incrementing", event.household_id)
            return
        if event.team_member_id is None:
            logger.info("Household %s has no team member; quoted count not credited", event.household_id)
            return

        metric_date = event.first_quote_date or date.today()
        # errors propagate so the caller rolls back the promotion with the credit
        record = await self.metrics.increment(
            agency_id=event.agency_id,
            team_member_id=event.team_member_id,
            metric_date=metric_date,
            column="quoted_count",
        )
        if record is not None:
            self.credited.append((event.team_member_id, metric_date))


# ---------------- STATE MACHINE ----------------
@dataclass
class IngestionOutcome:
    household: Household
    previous_status: str
    fact_id: Optional[UUID] = None
    duplicate: bool = False
    household_created: bool = False
    credited: List[Tuple[UUID, date]] = field(default_factory=list)

    @property
    def metrics_incremented(self) -> bool:
        return bool(self.credited)


class HouseholdLifecycle:
    """
        Lead -> Quoted -> Sold state machine for deduplicated households.

        Workflow for a fact:
        1. Normalize the identity to `LAST_FIRST_ZIP5` and merge into the
           existing household for the agency, or create one in `lead`.
        2. Drop the fact if it is a retry of one already stored (same source and
           reference, or same source, date and product).
        3. Store the fact and publish QuoteRecorded/SaleRecorded. The promotion
           handler advances status and publishes HouseholdPromoted, which the
           quoted-count handler turns into a metrics increment.

        Methods flush but never commit. A failure before the fact is stored
        leaves the household uncommitted, so callers roll back rather than
        persist a ghost.
    """

    def __init__(self, db: AsyncSession, metrics: Optional[MetricsUpsertEngine] = None):
        self.db = db
        self.bus = EventBus()
        self.promotions = HouseholdPromotionHandler(db, self.bus)
        self.quoted_counts = QuotedCountHandler(db, metrics or MetricsUpsertEngine(db))

        self.bus.subscribe(QuoteRecorded, self.promotions.on_quote_recorded)
        self.bus.subscribe(SaleRecorded, self.promotions.on_sale_recorded)
        self.bus.subscribe(RetentionSignalReceived, self.promotions.on_retention_signal)
        self.bus.subscribe(HouseholdPromoted, self.quoted_counts.on_household_promoted)

    # ---------------- identity merge ----------------
    async def resolve_household(
        self,
        identity: HouseholdIdentity,
        attribution: Attribution,
        lead_received_date: Optional[date] = None,
    ) -> Tuple[Household, bool]:
        first_name, last_name = identity_names(identity)
        key = household_key(first_name, last_name, identity.zip_code)

        household = await crud_households.get_household_by_key(self.db, identity.agency_id, key)
        if household is None:
            household = await crud_households.create_household(
                self.db,
                household_id=uuid4(),
                agency_id=identity.agency_id,
                household_key=key,
                first_name=first_name,
                last_name=last_name,
                zip_code=normalize_zip(identity.zip_code) if identity.zip_code else None,
                phone=identity.phone,
                email=identity.email,
                status="lead",
                lead_received_date=lead_received_date,
                team_member_id=attribution.team_member_id,
                lead_source_id=attribution.lead_source_id,
                needs_attention=attribution.lead_source_id is None,
            )
            return household, True

        # fill gaps only; existing attribution always wins
        if household.lead_source_id is None and attribution.lead_source_id is not None:
            household.lead_source_id = attribution.lead_source_id
        if household.team_member_id is None and attribution.team_member_id is not None:
            household.team_member_id = attribution.team_member_id
        if household.lead_source_id is not None:
            household.needs_attention = False
        if household.lead_received_date is None and lead_received_date is not None:
            household.lead_received_date = lead_received_date
        household.phone = household.phone or identity.phone
        household.email = household.email or identity.email
        return household, False

    # ---------------- operations ----------------
    async def register_lead(self, request: LeadCreateRequest) -> IngestionOutcome:
        household, created = await self.resolve_household(
            request.identity, request, lead_received_date=request.lead_received_date or date.today()
        )
        if request.notes and not household.notes:
            household.notes = request.notes
        await self.db.flush()
        return IngestionOutcome(household=household, previous_status=household.status, household_created=created)

    async def record_quote(self, request: QuoteFactRequest) -> IngestionOutcome:
        household, created = await self.resolve_household(request.identity, request)
        outcome = IngestionOutcome(household=household, previous_status=household.status, household_created=created)

        duplicate = await crud_households.find_duplicate_quote(
            self.db, household.household_id, request.source, request.source_reference_id,
            request.quote_date, request.product_type,
        )
        if duplicate is not None:
            logger.info("Quote %s for household %s already recorded", duplicate.quote_id, household.household_id)
            outcome.fact_id = duplicate.quote_id
            outcome.duplicate = True
            return outcome

        quote = await crud_households.create_quote(
            self.db,
            quote_id=uuid4(),
            agency_id=household.agency_id,
            household_id=household.household_id,
            team_member_id=request.team_member_id or household.team_member_id,
            quote_date=request.quote_date,
            product_type=request.product_type,
            items_quoted=request.items_quoted,
            premium_cents=request.premium_cents,
            source=request.source,
            source_reference_id=request.source_reference_id,
        )
        outcome.fact_id = quote.quote_id

        credited_before = len(self.quoted_counts.credited)
        await self.bus.publish(QuoteRecorded(
            household_id=household.household_id,
            quote_id=quote.quote_id,
            quote_date=quote.quote_date,
            team_member_id=quote.team_member_id,
            skip_metrics_increment=request.skip_metrics_increment,
        ))
        outcome.credited = self.quoted_counts.credited[credited_before:]
        await self.db.flush()
        return outcome

    async def record_sale(self, request: SaleFactRequest) -> IngestionOutcome:
        household, created = await self.resolve_household(request.identity, request)
        outcome = IngestionOutcome(household=household, previous_status=household.status, household_created=created)

        duplicate = await crud_households.find_duplicate_sale(
            self.db, household.household_id, request.source, request.source_reference_id,
            request.sale_date, request.product_type,
        )
        if duplicate is not None:
            logger.info("Sale %s for household %s already recorded", duplicate.sale_id, household.household_id)
            outcome.fact_id = duplicate.sale_id
            outcome.duplicate = True
            return outcome

        sale = await crud_households.create_sale(
            self.db,
            sale_id=uuid4(),
            agency_id=household.agency_id,
            household_id=household.household_id,
            team_member_id=request.team_member_id or household.team_member_id,
            sale_date=request.sale_date,
            product_type=request.product_type,
            items_sold=request.items_sold,
            policies_sold=request.policies_sold,
            premium_cents=request.premium_cents,
            policy_number=request.policy_number,
            source=request.source,
            source_reference_id=request.source_reference_id,
            linked_quote_id=request.linked_quote_id,
        )
        outcome.fact_id = sale.sale_id
        await self.bus.publish(SaleRecorded(
            household_id=household.household_id,
            sale_id=sale.sale_id,
            sale_date=sale.sale_date,
            team_member_id=sale.team_member_id,
        ))
        await self.db.flush()
        return outcome

    async def _apply_signal(self, household_id: UUID, workflow: str, outcome: str,
                            effective_date: Optional[date], changed_by: Optional[UUID]) -> IngestionOutcome:
        household = await crud_households.get_household(self.db, household_id)
        if household is None:
            raise LookupError(f"Household {household_id} not found")
        result = IngestionOutcome(household=household, previous_status=household.status)

        credited_before = len(self.quoted_counts.credited)
        await self.bus.publish(RetentionSignalReceived(
            household_id=household_id,
            workflow=workflow,
            outcome=outcome,
            effective_date=effective_date,
            changed_by=changed_by,
        ))
        result.credited = self.quoted_counts.credited[credited_before:]
        await self.db.flush()
        return result

    async def apply_winback(self, request: WinbackSignalRequest) -> IngestionOutcome:
        return await self._apply_signal(
            request.household_id, "winback", request.outcome, request.effective_date, request.changed_by
        )

    async def apply_renewal(self, request: RenewalSignalRequest) -> IngestionOutcome:
        return await self._apply_signal(
            request.household_id, "renewal", request.outcome, request.renewal_effective_date, request.changed_by
        )

    async def correct_status(self, household_id: UUID, request: StatusCorrectionRequest) -> IngestionOutcome:
        """Administrative override; the only path allowed to move status backward."""
        household = await crud_households.get_household(self.db, household_id)
        if household is None:
            raise LookupError(f"Household {household_id} not found")
        result = IngestionOutcome(household=household, previous_status=household.status)
        if request.status == household.status:
            return result

        if STATUS_RANK[request.status] < STATUS_RANK["sold"]:
            household.sold_date = None
        if request.status == "lead":
            household.first_quote_date = None
        elif household.first_quote_date is None:
            household.first_quote_date = date.today()
        if request.status == "sold" and household.sold_date is None:
            household.sold_date = date.today()

        await transition(
            self.db, household, request.status, "correction",
            changed_by=request.changed_by, notes=request.reason,
        )
        await self.db.flush()
        return result
