from datetime import date
from uuid import uuid4

from scorecard.crud import reference as crud_reference
from scorecard.models import LeadSource, Submission
from scorecard.services.quoted_details import QuotedDetailsFlattener, custom_field_definitions, quoted_rows
from tests.factories import seed_agency

WORK_DATE = date(2025, 9, 2)


async def _submission(session_factory, seeded, payload):
    async with session_factory() as db:
        submission = Submission(
            submission_id=uuid4(),
            form_template_id=seeded.form_id,
            team_member_id=seeded.member_id,
            submission_date=date(2025, 9, 3),
            work_date=WORK_DATE,
            payload_json=payload,
            final=True,
        )
        db.add(submission)
        await db.commit()
    return submission


async def _flatten(session_factory, seeded, submission, form=None):
    async with session_factory() as db:
        flattener = QuotedDetailsFlattener(db)
        result = await flattener.flatten(submission, form, seeded.agency_id)
        await db.commit()
        details = await flattener.details(submission.submission_id)
    return result, details


async def _lead_source(session_factory, agency_id, name):
    source_id = uuid4()
    async with session_factory() as db:
        db.add(LeadSource(lead_source_id=source_id, agency_id=agency_id, name=name))
        await db.commit()
    return source_id


def test_quoted_rows_accepts_both_spellings():
    assert quoted_rows({"quoted_details": [{"name": "A"}]}) == [{"name": "A"}]
    assert quoted_rows({"quotedDetails": [{"name": "B"}]}) == [{"name": "B"}]
    assert quoted_rows({}) is None
    assert quoted_rows(None) is None


async def test_flatten_creates_rows_and_skips_blank_ones(session_factory):
    seeded = await seed_agency(session_factory)
    submission = await _submission(session_factory, seeded, {
        "quoted_details": [
            {"prospect_name": "Mary O'Brien", "zip_code": "60601", "items_quoted": "3", "premium_potential": "1250.50"},
            {"prospect_name": "", "items_quoted": ""},
            {"household_name": "Lee Park", "policies_quoted": 2, "notes": "call back Friday"},
        ]
    })

    result, details = await _flatten(session_factory, seeded, submission)

    assert result.success is True
    assert result.records_created == 2
    assert result.rows_skipped == 1
    assert [d.row_index for d in details] == [0, 2]

    first, second = details
    assert first.household_name == "Mary O'Brien"
    assert first.zip_code == "60601"
    assert first.items_quoted == 3
    assert first.premium_potential_cents == 125050
    assert first.work_date == WORK_DATE
    assert first.team_member_id == seeded.member_id
    assert second.policies_quoted == 2
    assert second.premium_potential_cents is None
    assert second.extras["detailed_notes"] == "call back Friday"


async def test_garbage_row_does_not_block_the_rest(session_factory):
    seeded = await seed_agency(session_factory)
    submission = await _submission(session_factory, seeded, {
        "quoted_details": [
            "not an object",
            {"prospect_name": "Ana Ruiz", "items_quoted": "several"},
            {"prospect_name": "Lee Park", "items_quoted": 1},
        ]
    })

    result, details = await _flatten(session_factory, seeded, submission)

    assert result.success is True
    assert result.rows_failed == 2
    assert result.records_created == 1
    assert details[0].household_name == "Lee Park"


async def test_reflatten_replaces_rows(session_factory):
    seeded = await seed_agency(session_factory)
    submission = await _submission(session_factory, seeded, {
        "quotedDetails": [{"prospect_name": "Mary O'Brien"}, {"prospect_name": "Lee Park"}]
    })

    await _flatten(session_factory, seeded, submission)
    result, details = await _flatten(session_factory, seeded, submission)

    assert result.records_created == 2
    assert len(details) == 2


async def test_non_list_section_is_reported(session_factory):
    seeded = await seed_agency(session_factory)
    submission = await _submission(session_factory, seeded, {"quoted_details": {"prospect_name": "Mary"}})

    result, details = await _flatten(session_factory, seeded, submission)

    assert result.success is False
    assert "not a list" in result.error_message
    assert details == []


async def test_malformed_resubmission_clears_earlier_rows(session_factory):
    seeded = await seed_agency(session_factory)
    submission = await _submission(session_factory, seeded, {
        "quoted_details": [{"prospect_name": "Mary O'Brien"}, {"prospect_name": "Lee Park"}]
    })
    _, details = await _flatten(session_factory, seeded, submission)
    assert len(details) == 2

    submission.payload_json = {"quoted_details": {"prospect_name": "Mary O'Brien"}}
    result, details = await _flatten(session_factory, seeded, submission)

    assert result.success is False
    assert details == []


async def test_missing_section_is_a_no_op(session_factory):
    seeded = await seed_agency(session_factory)
    submission = await _submission(session_factory, seeded, {"outbound_calls": 10})

    result, details = await _flatten(session_factory, seeded, submission)

    assert result.success is True
    assert result.records_created == 0
    assert details == []


async def test_lead_source_resolution(session_factory):
    seeded = await seed_agency(session_factory)
    referral_id = await _lead_source(session_factory, seeded.agency_id, "Referral")
    web_id = await _lead_source(session_factory, seeded.agency_id, "Web Lead")
    submission = await _submission(session_factory, seeded, {
        "quoted_details": [
            {"prospect_name": "From Id", "lead_source_id": str(referral_id)},
            {"prospect_name": "From Label", "lead_source_label": "web lead"},
            {"prospect_name": "Both", "lead_source_id": str(referral_id), "lead_source_label": "Walk-in"},
            {"prospect_name": "Unknown Label", "lead_source": "Billboard"},
            {"prospect_name": "Bad Id", "lead_source_id": "not-a-uuid"},
        ]
    })

    result, details = await _flatten(session_factory, seeded, submission)

    assert result.records_created == 5
    resolved = {d.household_name: (d.lead_source_id, d.lead_source_label) for d in details}
    assert resolved["From Id"] == (referral_id, "Referral")
    assert resolved["From Label"] == (web_id, "web lead")
    assert resolved["Both"] == (referral_id, "Walk-in")
    assert resolved["Unknown Label"] == (None, "Billboard")
    assert resolved["Bad Id"] == (None, None)


async def test_custom_fields_are_kept_by_label(session_factory):
    seeded = await seed_agency(
        session_factory,
        repeater_fields=[{"key": "field_1712", "label": "Current Carrier", "type": "text"}],
    )
    submission = await _submission(session_factory, seeded, {
        "quoted_details": [{"prospect_name": "Mary O'Brien", "field_1712": "State Farm"}]
    })
    async with session_factory() as db:
        form = await crud_reference.get_form_template(db, seeded.form_id)

    result, details = await _flatten(session_factory, seeded, submission, form)

    assert custom_field_definitions(form) == {"field_1712": {"label": "Current Carrier", "type": "text"}}
    assert details[0].extras["custom_fields"]["Current Carrier"]["value"] == "State Farm"
    assert details[0].extras["original_data"]["field_1712"] == "State Farm"
