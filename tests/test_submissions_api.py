from datetime import date
from uuid import uuid4

from scorecard.crud import daily_metrics as crud_metrics
from tests.factories import seed_agency

MON = "2025-09-01"
MON_DATE = date(2025, 9, 1)
METRICS_RANGE = {"start": "2025-09-01", "end": "2025-09-05"}


def _submission(seeded, payload, work_date=MON, **fields):
    body = {
        "form_template_id": str(seeded.form_id),
        "team_member_id": str(seeded.member_id),
        "submission_date": work_date,
        "work_date": work_date,
        "payload": payload,
    }
    body.update(fields)
    return body


async def _metrics(client, seeded):
    response = await client.get(f"/api/v1/members/{seeded.member_id}/metrics", params=METRICS_RANGE)
    assert response.status_code == 200
    return response.json()


async def test_submission_lands_in_daily_metrics(session_factory, client_factory):
    seeded = await seed_agency(session_factory, targets={"outbound_calls": 50, "quoted_count": 2})

    async with client_factory() as client:
        response = await client.post("/api/v1/submissions", json=_submission(
            seeded, {"outbound_calls": "60", "talk_minutes": 95, "quoted_households": 3, "sold_premium": "410.25"}
        ))
        assert response.status_code == 201
        result = response.json()
        assert result["processed"] is True
        assert result["metric_id"] is not None

        body = await _metrics(client, seeded)

    assert len(body["records"]) == 1
    record = body["records"][0]
    assert record["date"] == MON
    assert record["outbound_calls"] == 60
    assert record["talk_minutes"] == 95
    assert record["quoted_count"] == 3
    assert record["sold_premium_cents"] == 41025
    assert record["label_at_submit"] == "v1"
    assert record["hits"] == 4
    assert record["passed"] is True
    assert record["streak_count"] == 1
    assert body["current_streak"] == 1


async def test_resubmission_supersedes_previous_final(session_factory, client_factory):
    seeded = await seed_agency(session_factory)

    async with client_factory() as client:
        first = (await client.post("/api/v1/submissions", json=_submission(seeded, {"outbound_calls": 40}))).json()
        second = (await client.post("/api/v1/submissions", json=_submission(seeded, {"outbound_calls": 25}))).json()
        body = await _metrics(client, seeded)

    assert second["supersedes_id"] == first["submission_id"]
    assert second["metric_id"] == first["metric_id"]
    assert body["records"][0]["outbound_calls"] == 25


async def test_draft_is_stored_but_not_processed(session_factory, client_factory):
    seeded = await seed_agency(session_factory)

    async with client_factory() as client:
        response = await client.post("/api/v1/submissions", json=_submission(seeded, {"outbound_calls": 40}, final=False))
        body = await _metrics(client, seeded)

    assert response.status_code == 201
    assert response.json()["processed"] is False
    assert response.json()["skipped_reason"] == "not_final"
    assert body["records"] == []


async def test_unpublished_form_is_skipped(session_factory, client_factory):
    seeded = await seed_agency(session_factory, form_status="draft")

    async with client_factory() as client:
        response = await client.post("/api/v1/submissions", json=_submission(seeded, {"outbound_calls": 40}))

    assert response.json()["processed"] is False
    assert response.json()["skipped_reason"] == "form_not_published"


async def test_audit_is_written_when_nothing_extracts(session_factory, client_factory):
    seeded = await seed_agency(session_factory)

    async with client_factory() as client:
        result = (await client.post("/api/v1/submissions", json=_submission(seeded, {"comments": "slow day"}))).json()
        audits = (await client.get(f"/api/v1/submissions/{result['submission_id']}/audits")).json()

    assert result["processed"] is True
    assert len(audits) == 1
    assert audits[0]["values_extracted"] == 0
    assert audits[0]["had_mapping_config"] is False
    assert len(audits[0]["absent_keys"]) == 8


async def test_hybrid_member_scores_under_form_role(session_factory, client_factory):
    seeded = await seed_agency(session_factory, member_role="Hybrid", form_role="Service")

    async with client_factory() as client:
        await client.post("/api/v1/submissions", json=_submission(seeded, {"outbound_calls": 12}))
        body = await _metrics(client, seeded)

    assert body["records"][0]["role"] == "Service"


async def test_unknown_form_is_404(session_factory, client_factory):
    seeded = await seed_agency(session_factory)

    async with client_factory() as client:
        response = await client.post(
            "/api/v1/submissions", json=_submission(seeded, {}, form_template_id=str(uuid4()))
        )

    assert response.status_code == 404


async def test_form_from_another_agency_is_rejected(session_factory, client_factory):
    seeded = await seed_agency(session_factory)
    other = await seed_agency(session_factory)

    async with client_factory() as client:
        response = await client.post(
            "/api/v1/submissions", json=_submission(seeded, {}, form_template_id=str(other.form_id))
        )

    assert response.status_code == 400


async def test_metrics_are_cached_until_a_write(session_factory, client_factory, fake_redis):
    seeded = await seed_agency(session_factory)

    async with client_factory() as client:
        await client.post("/api/v1/submissions", json=_submission(seeded, {"quoted_households": 3}))
        assert (await _metrics(client, seeded))["records"][0]["quoted_count"] == 3

        # edits that bypass the services are not seen while the cache entry lives
        async with session_factory() as db:
            record = await crud_metrics.get_metric_by_member_and_date(db, seeded.member_id, MON_DATE)
            record.talk_minutes = 999
            await db.commit()
        assert (await _metrics(client, seeded))["records"][0]["talk_minutes"] == 0

        # a quick-add quote on the same day credits one more quoted household
        response = await client.post("/api/v1/households/quotes", json={
            "identity": {"agency_id": str(seeded.agency_id), "first_name": "Mary", "last_name": "O'Brien", "zip_code": "60601"},
            "team_member_id": str(seeded.member_id),
            "quote_date": MON,
            "product_type": "Auto",
            "source": "manual",
        })
        assert response.status_code == 201
        assert response.json()["metrics_incremented"] is True

        record = (await _metrics(client, seeded))["records"][0]

    assert record["quoted_count"] == 4
    assert record["talk_minutes"] == 999
    assert any(key.startswith("member_metrics:") and key != "member_metrics:version" for key in fake_redis.store)


async def test_quoted_details_sync_into_households(session_factory, client_factory):
    seeded = await seed_agency(session_factory)
    payload = {
        "quoted_households": 2,
        "quoted_details": [
            {"prospect_name": "Mary O'Brien", "zip_code": "60601", "items_quoted": 2, "premium_potential": "900"},
            {"prospect_name": "No Zip"},
        ],
    }

    async with client_factory() as client:
        result = (await client.post("/api/v1/submissions", json=_submission(seeded, payload))).json()
        details = (await client.get(f"/api/v1/submissions/{result['submission_id']}/quoted-details")).json()
        lead = (await client.post("/api/v1/households/leads", json={
            "identity": {"agency_id": str(seeded.agency_id), "full_name": "MARY O'BRIEN", "zip_code": "60601"},
        })).json()
        household = (await client.get(f"/api/v1/households/{lead['household']['household_id']}")).json()

        # reprocessing converges instead of duplicating
        again = (await client.post(f"/api/v1/submissions/{result['submission_id']}/process")).json()
        body = await _metrics(client, seeded)

    assert result["quoted_details_created"] == 2
    assert result["households_synced"] == 1
    assert result["households_skipped"] == 1
    assert [d["household_name"] for d in details] == ["Mary O'Brien", "No Zip"]
    assert details[0]["premium_potential_cents"] == 90000

    assert lead["household_created"] is False
    assert lead["household"]["status"] == "quoted"
    assert len(household["quotes"]) == 1
    assert household["quotes"][0]["source"] == "scorecard"
    assert household["quotes"][0]["items_quoted"] == 2
    assert household["quotes"][0]["source_reference_id"] == result["submission_id"]

    assert again["processed"] is True
    assert again["households_synced"] == 1
    assert body["records"][0]["quoted_count"] == 2


async def test_household_endpoints(session_factory, client_factory):
    seeded = await seed_agency(session_factory)
    identity = {"agency_id": str(seeded.agency_id), "first_name": "Lee", "last_name": "Park", "zip_code": "60601"}

    async with client_factory() as client:
        sale = await client.post("/api/v1/households/sales", json={
            "identity": identity,
            "team_member_id": str(seeded.member_id),
            "sale_date": MON,
            "product_type": "Auto",
            "source": "sales_dashboard",
            "policy_number": "P-1",
        })
        household_id = sale.json()["household"]["household_id"]
        corrected = await client.post(f"/api/v1/households/{household_id}/correct-status", json={
            "status": "quoted", "reason": "sale was cancelled",
        })
        missing = await client.get(f"/api/v1/households/{uuid4()}")
        invalid = await client.post("/api/v1/households/leads", json={"identity": {"agency_id": str(seeded.agency_id)}})

    assert sale.status_code == 201
    assert sale.json()["household"]["status"] == "sold"
    assert corrected.status_code == 200
    assert corrected.json()["household"]["status"] == "quoted"
    assert corrected.json()["household"]["sold_date"] is None
    assert missing.status_code == 404
    assert invalid.status_code == 422


async def test_admin_endpoints(session_factory, client_factory):
    seeded = await seed_agency(session_factory)

    async with client_factory() as client:
        reconcile = await client.post("/api/v1/admin/reconcile", params={"agency_id": str(seeded.agency_id)})
        backfill = await client.post("/api/v1/admin/backfill-metrics", json={"agency_id": str(seeded.agency_id), "days": 3})
        bad_range = await client.post("/api/v1/admin/rescore", json={
            "agency_id": str(seeded.agency_id), "start": "2025-09-05", "end": "2025-09-01",
        })

    assert reconcile.status_code == 200
    assert reconcile.json()["ghosts_deleted"] == 0
    assert backfill.status_code == 200
    assert backfill.json() == {"processed": 0, "skipped": 0, "errors": 0}
    assert bad_range.status_code == 400
