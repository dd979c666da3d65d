from decimal import Decimal

import pytest

from scorecard.services.field_extraction import (
    CoercionError,
    FieldExtractionResolver,
    coerce_number,
    to_cents,
)


def test_canonical_keys_are_extracted():
    result = FieldExtractionResolver().extract(
        {"outbound_calls": 42, "talk_minutes": "95", "quoted_households": 3, "items_sold": "2"}
    )

    assert result.values["outbound_calls"] == Decimal("42")
    assert result.values["talk_minutes"] == Decimal("95")
    assert result.key_sources["quoted_households"] == "canonical"
    assert result.record_fields() == {
        "outbound_calls": 42,
        "talk_minutes": 95,
        "quoted_count": 3,
        "sold_items": 2,
    }
    assert result.had_mapping_config is False


def test_legacy_names_are_used_when_canonical_missing():
    result = FieldExtractionResolver().extract({"quoted_count": 4, "sold_items": 1})

    assert result.values["quoted_households"] == Decimal("4")
    assert result.key_sources["quoted_households"] == "legacy:quoted_count"
    assert result.key_sources["items_sold"] == "legacy:sold_items"


def test_canonical_name_wins_over_legacy_name():
    result = FieldExtractionResolver().extract({"quoted_households": 5, "quoted_count": 2})

    assert result.values["quoted_households"] == Decimal("5")
    assert result.key_sources["quoted_households"] == "canonical"


def test_preselected_prefix_generation_is_recognised():
    result = FieldExtractionResolver().extract({"preselected_kpi_3_outbound_calls": "60"})

    assert result.values["outbound_calls"] == Decimal("60")
    assert result.key_sources["outbound_calls"] == "legacy:preselected_kpi"


def test_explicit_mapping_takes_precedence():
    resolver = FieldExtractionResolver(field_mappings={"outbound_calls": "dials_made"})
    result = resolver.extract({"dials_made": 70, "outbound_calls": 10})

    assert result.values["outbound_calls"] == Decimal("70")
    assert result.key_sources["outbound_calls"] == "mapping"
    assert result.had_mapping_config is True


def test_mapping_falls_through_when_payload_lacks_mapped_key():
    resolver = FieldExtractionResolver(field_mappings={"outbound_calls": "dials_made"})
    result = resolver.extract({"outbound_calls": 10})

    assert result.values["outbound_calls"] == Decimal("10")
    assert result.key_sources["outbound_calls"] == "canonical"


def test_kpi_fields_resolve_slug_and_custom_kpis():
    resolver = FieldExtractionResolver(kpi_fields=[
        {"key": "preselected_kpi_1_quoted_count", "selectedKpiSlug": "quoted_count"},
        {"key": "preselected_kpi_2_custom_reviews", "selectedKpiSlug": "custom_reviews"},
        {"key": "life_apps", "selectedKpiSlug": "life_applications"},
    ])
    result = resolver.extract({
        "preselected_kpi_1_quoted_count": 6,
        "custom_reviews": "2",
        "life_apps": "1.5",
    })

    assert result.values["quoted_households"] == Decimal("6")
    assert result.key_sources["quoted_households"] == "kpi_field"
    assert result.custom_kpis == {"custom_reviews": 2.0, "life_applications": 1.5}


def test_non_numeric_value_is_absent_and_reported():
    result = FieldExtractionResolver().extract({"outbound_calls": "lots", "talk_minutes": ""})

    assert "outbound_calls" not in result.values
    assert "outbound_calls" in result.absent_keys
    assert "talk_minutes" in result.absent_keys
    assert result.coercion_failures == [{"key": "outbound_calls", "payload_key": "outbound_calls", "raw": "lots"}]


def test_empty_payload_extracts_nothing():
    result = FieldExtractionResolver().extract({})

    assert result.values == {}
    assert result.values_extracted == 0
    assert result.record_fields() == {}
    assert len(result.absent_keys) == 8


def test_premium_is_stored_in_cents_rounded_down():
    result = FieldExtractionResolver().extract({"sold_premium": "1234.567", "quoted_entity": " Smith "})

    assert result.record_fields()["sold_premium_cents"] == 123456
    assert result.quoted_entity == "Smith"
    assert to_cents(Decimal("0.019")) == 1


@pytest.mark.parametrize("raw", [True, "12abc", "1,200", [3], {"a": 1}])
def test_coerce_number_rejects_non_numbers(raw):
    with pytest.raises(CoercionError):
        coerce_number(raw)


def test_coerce_number_treats_blank_as_absent():
    assert coerce_number(None) is None
    assert coerce_number("   ") is None
    assert coerce_number(" 7 ") == Decimal("7")
