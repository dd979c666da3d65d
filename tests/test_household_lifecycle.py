from datetime import date
from uuid import uuid4

import pytest

from scorecard.crud import daily_metrics as crud_metrics
from scorecard.crud import households as crud_households
from scorecard.schemas.household import (
    HouseholdIdentity,
    LeadCreateRequest,
    QuoteFactRequest,
    RenewalSignalRequest,
    SaleFactRequest,
    StatusCorrectionRequest,
    WinbackSignalRequest,
)
from scorecard.services.household_lifecycle import HouseholdLifecycle, household_key, split_full_name
from scorecard.services.household_services import HouseholdServices
from tests.factories import seed_agency

MON = date(2025, 9, 1)
TUE = date(2025, 9, 2)


def _identity(agency_id, first="Mary", last="O'Brien", zip_code="60601"):
    return HouseholdIdentity(agency_id=agency_id, first_name=first, last_name=last, zip_code=zip_code)


def _quote(seeded, **overrides):
    fields = dict(
        identity=_identity(seeded.agency_id),
        team_member_id=seeded.member_id,
        quote_date=MON,
        product_type="Auto",
        source="allstate_report",
        source_reference_id="Q-100",
    )
    fields.update(overrides)
    return QuoteFactRequest(**fields)


def _sale(seeded, **overrides):
    fields = dict(
        identity=_identity(seeded.agency_id),
        team_member_id=seeded.member_id,
        sale_date=TUE,
        product_type="Auto",
        source="sales_dashboard",
        source_reference_id="S-100",
    )
    fields.update(overrides)
    return SaleFactRequest(**fields)


async def _run(session_factory, action):
    async with session_factory() as db:
        outcome = await action(HouseholdLifecycle(db))
        await db.commit()
    return outcome


async def _quoted_count(session_factory, seeded, day=MON):
    async with session_factory() as db:
        record = await crud_metrics.get_metric_by_member_and_date(db, seeded.member_id, day)
    return record.quoted_count if record is not None else None


def test_household_key_normalization():
    assert household_key("Mary", "O'Brien", "60601-1234") == "OBRIEN_MARY_60601"
    assert household_key(" mary ", "o'brien", " 606 01") == "OBRIEN_MARY_60601"
    assert household_key("Mary", "O'Brien", None) == "OBRIEN_MARY_00000"
    assert household_key("", "42", "") == "UNKNOWN_UNKNOWN_00000"


def test_split_full_name():
    assert split_full_name("Mary Ann O'Brien") == ("Mary", "Ann O'Brien")
    assert split_full_name("Cher") == ("Unknown", "Cher")
    assert split_full_name("   ") == ("Unknown", "Unknown")


def test_identity_requires_a_name():
    with pytest.raises(ValueError):
        HouseholdIdentity(agency_id=uuid4(), zip_code="60601")


async def test_identity_variants_resolve_to_one_household(session_factory):
    seeded = await seed_agency(session_factory)

    first = await _run(session_factory, lambda lc: lc.register_lead(
        LeadCreateRequest(identity=_identity(seeded.agency_id), lead_received_date=MON)
    ))
    second = await _run(session_factory, lambda lc: lc.register_lead(
        LeadCreateRequest(identity=_identity(seeded.agency_id, first=" MARY", last="obrien ", zip_code="60601-9999"))
    ))

    assert first.household_created is True
    assert second.household_created is False
    assert second.household.household_id == first.household.household_id
    assert second.household.household_key == "OBRIEN_MARY_60601"


async def test_quote_promotes_lead_and_credits_once(session_factory):
    seeded = await seed_agency(session_factory)

    outcome = await _run(session_factory, lambda lc: lc.record_quote(_quote(seeded)))

    assert outcome.household_created is True
    assert outcome.household.status == "quoted"
    assert outcome.household.first_quote_date == MON
    assert outcome.metrics_incremented is True
    assert await _quoted_count(session_factory, seeded) == 1

    retry = await _run(session_factory, lambda lc: lc.record_quote(_quote(seeded)))
    assert retry.duplicate is True
    assert retry.fact_id == outcome.fact_id
    assert retry.metrics_incremented is False

    # a second product on an already quoted household is not a new quoted household
    another = await _run(session_factory, lambda lc: lc.record_quote(
        _quote(seeded, product_type="Home", source_reference_id="Q-101")
    ))
    assert another.duplicate is False
    assert another.metrics_incremented is False
    assert await _quoted_count(session_factory, seeded) == 1

    async with session_factory() as db:
        quotes = await crud_households.get_quotes(db, outcome.household.household_id)
    assert len(quotes) == 2


async def test_same_date_and_product_from_same_source_is_a_retry(session_factory):
    seeded = await seed_agency(session_factory)

    await _run(session_factory, lambda lc: lc.record_quote(_quote(seeded, source_reference_id=None)))
    retry = await _run(session_factory, lambda lc: lc.record_quote(_quote(seeded, source_reference_id="Q-999")))

    assert retry.duplicate is True


async def test_skip_flag_promotes_without_crediting(session_factory):
    seeded = await seed_agency(session_factory)

    outcome = await _run(session_factory, lambda lc: lc.record_quote(
        _quote(seeded, source="scorecard", skip_metrics_increment=True)
    ))

    assert outcome.household.status == "quoted"
    assert outcome.metrics_incremented is False
    assert await _quoted_count(session_factory, seeded) is None


async def test_sale_moves_to_sold_and_status_never_regresses(session_factory):
    seeded = await seed_agency(session_factory)

    sold = await _run(session_factory, lambda lc: lc.record_sale(_sale(seeded)))
    assert sold.household.status == "sold"
    assert sold.household.sold_date == TUE
    assert sold.metrics_incremented is False

    later = await _run(session_factory, lambda lc: lc.record_quote(_quote(seeded, quote_date=date(2025, 9, 3))))
    assert later.duplicate is False
    assert later.household.status == "sold"
    assert later.household.first_quote_date == date(2025, 9, 3)
    assert await _quoted_count(session_factory, seeded, date(2025, 9, 3)) is None


async def test_winback_signals(session_factory):
    seeded = await seed_agency(session_factory)
    lead = await _run(session_factory, lambda lc: lc.register_lead(
        LeadCreateRequest(identity=_identity(seeded.agency_id), team_member_id=seeded.member_id, lead_received_date=MON)
    ))
    household_id = lead.household.household_id

    quoted = await _run(session_factory, lambda lc: lc.apply_winback(
        WinbackSignalRequest(household_id=household_id, outcome="moved_to_quoted", effective_date=MON)
    ))
    assert quoted.previous_status == "lead"
    assert quoted.household.status == "quoted"
    assert quoted.household.first_quote_date == MON
    assert quoted.metrics_incremented is True
    assert await _quoted_count(session_factory, seeded) == 1

    won = await _run(session_factory, lambda lc: lc.apply_winback(
        WinbackSignalRequest(household_id=household_id, outcome="won_back", effective_date=TUE)
    ))
    assert won.household.status == "sold"
    assert won.household.sold_date == TUE


async def test_renewal_signals(session_factory):
    seeded = await seed_agency(session_factory)
    quoted = await _run(session_factory, lambda lc: lc.record_quote(_quote(seeded)))
    household_id = quoted.household.household_id

    failed = await _run(session_factory, lambda lc: lc.apply_renewal(
        RenewalSignalRequest(household_id=household_id, outcome="unsuccessful")
    ))
    assert failed.household.status == "quoted"

    renewed = await _run(session_factory, lambda lc: lc.apply_renewal(
        RenewalSignalRequest(household_id=household_id, outcome="success", renewal_effective_date=TUE)
    ))
    assert renewed.household.status == "sold"
    assert renewed.household.sold_date == TUE


async def test_signal_for_unknown_household(session_factory):
    async with session_factory() as db:
        with pytest.raises(LookupError):
            await HouseholdLifecycle(db).apply_winback(
                WinbackSignalRequest(household_id=uuid4(), outcome="won_back")
            )


async def test_correction_moves_backward_and_clears_dates(session_factory):
    seeded = await seed_agency(session_factory)
    sold = await _run(session_factory, lambda lc: lc.record_sale(_sale(seeded)))
    household_id = sold.household.household_id
    manager = uuid4()

    corrected = await _run(session_factory, lambda lc: lc.correct_status(
        household_id, StatusCorrectionRequest(status="lead", reason="entered on the wrong household", changed_by=manager)
    ))

    assert corrected.previous_status == "sold"
    assert corrected.household.status == "lead"
    assert corrected.household.sold_date is None
    assert corrected.household.first_quote_date is None

    async with session_factory() as db:
        history = await crud_households.get_status_history(db, household_id)
    assert [(h.previous_status, h.new_status, h.reason) for h in history] == [
        ("lead", "sold", "sale_fact"),
        ("sold", "lead", "correction"),
    ]
    assert history[-1].changed_by == manager
    assert history[-1].notes == "entered on the wrong household"


async def test_attribution_fills_gaps_only(session_factory):
    seeded = await seed_agency(session_factory)
    first_source, second_source = uuid4(), uuid4()

    lead = await _run(session_factory, lambda lc: lc.register_lead(
        LeadCreateRequest(identity=_identity(seeded.agency_id), lead_received_date=MON)
    ))
    assert lead.household.needs_attention is True
    assert lead.household.team_member_id is None

    quoted = await _run(session_factory, lambda lc: lc.record_quote(_quote(seeded, lead_source_id=first_source)))
    assert quoted.household.lead_source_id == first_source
    assert quoted.household.team_member_id == seeded.member_id
    assert quoted.household.needs_attention is False

    sold = await _run(session_factory, lambda lc: lc.record_sale(_sale(seeded, lead_source_id=second_source)))
    assert sold.household.lead_source_id == first_source


async def test_failed_quoted_count_credit_rolls_back_the_quote(session_factory, fake_redis):
    seeded = await seed_agency(session_factory)
    unknown_member = uuid4()

    async with session_factory() as db:
        with pytest.raises(LookupError):
            await HouseholdServices.record_quote_service(_quote(seeded, team_member_id=unknown_member), db, fake_redis)

    async with session_factory() as db:
        assert await crud_households.get_household_by_key(db, seeded.agency_id, "OBRIEN_MARY_60601") is None

    async with session_factory() as db:
        response = await HouseholdServices.record_quote_service(_quote(seeded), db, fake_redis)
    assert response.household.status == "quoted"
    assert response.household_created is True
    assert response.metrics_incremented is True
    assert await _quoted_count(session_factory, seeded) == 1
