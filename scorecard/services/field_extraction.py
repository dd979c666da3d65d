import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_FLOOR, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Canonical numeric metric keys, in the order they are reported
METRIC_KEYS: Tuple[str, ...] = (
    "outbound_calls",
    "talk_minutes",
    "quoted_households",
    "items_sold",
    "sold_policies",
    "sold_premium",
    "cross_sells_uncovered",
    "mini_reviews",
)
TEXT_KEYS: Tuple[str, ...] = ("quoted_entity",)

# Deprecated payload names, tried in order after the canonical one
LEGACY_ALIASES: Dict[str, Tuple[str, ...]] = {
    "quoted_households": ("quoted_count",),
    "items_sold": ("sold_items",),
}

# Second naming generation: "preselected_kpi_<n>_<key>"
PRESELECTED_PREFIX = re.compile(r"^preselected_kpi_\d+_")
_NUMERIC = re.compile(r"^-?\d+(\.\d+)?$")

# Canonical key -> DailyMetric column
RECORD_COLUMNS: Dict[str, str] = {
    "outbound_calls": "outbound_calls",
    "talk_minutes": "talk_minutes",
    "quoted_households": "quoted_count",
    "items_sold": "sold_items",
    "sold_policies": "sold_policies",
    "sold_premium": "sold_premium_cents",
    "cross_sells_uncovered": "cross_sells_uncovered",
    "mini_reviews": "mini_reviews",
}


class CoercionError(ValueError):
    def __init__(self, raw: Any):
        super().__init__(f"not a number: {raw!r}")
        self.raw = raw


def is_blank(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and raw.strip() == "")


def coerce_number(raw: Any) -> Optional[Decimal]:
    """Blank → None; numbers and numeric strings → Decimal; anything else raises CoercionError."""
    if is_blank(raw):
        return None
    if isinstance(raw, bool):
        raise CoercionError(raw)
    if isinstance(raw, (int, float, Decimal)):
        try:
            value = Decimal(str(raw))
        except InvalidOperation:
            raise CoercionError(raw)
        if not value.is_finite():
            raise CoercionError(raw)
        return value
    if isinstance(raw, str) and _NUMERIC.match(raw.strip()):
        return Decimal(raw.strip())
    raise CoercionError(raw)


def to_int(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_cents(value: Decimal) -> int:
    return int((value * 100).quantize(Decimal(1), rounding=ROUND_FLOOR))


def canonical_slug(slug: str) -> Optional[str]:
    """Canonical metric key for a KPI slug or legacy alias, None for custom/unknown slugs."""
    if slug in METRIC_KEYS or slug in TEXT_KEYS:
        return slug
    for key, aliases in LEGACY_ALIASES.items():
        if slug in aliases:
            return key
    return None


@dataclass
class ExtractionResult:
    values: Dict[str, Decimal] = field(default_factory=dict)
    quoted_entity: Optional[str] = None
    custom_kpis: Dict[str, float] = field(default_factory=dict)
    key_sources: Dict[str, str] = field(default_factory=dict)
    absent_keys: List[str] = field(default_factory=list)
    coercion_failures: List[Dict[str, Any]] = field(default_factory=list)
    had_mapping_config: bool = False

    @property
    def values_extracted(self) -> int:
        return len(self.values) + len(self.custom_kpis) + (1 if self.quoted_entity else 0)

    def record_fields(self) -> Dict[str, Any]:
        """Extracted values keyed by DailyMetric column; absent keys are left out."""
        fields: Dict[str, Any] = {}
        for key, value in self.values.items():
            column = RECORD_COLUMNS[key]
            fields[column] = to_cents(value) if key == "sold_premium" else to_int(value)
        if self.quoted_entity is not None:
            fields["quoted_entity"] = self.quoted_entity
        if self.custom_kpis:
            fields["custom_kpis"] = dict(self.custom_kpis)
        return fields


class FieldExtractionResolver:
    """
        Maps a submitted payload onto canonical metric keys.

        Resolution order per key:
        1. Explicit per-form mapping (`field_mappings[key] -> payload key`).
        2. Form KPI fields (`[{key, selectedKpiSlug}]`) whose slug names the key.
           The payload is searched under the field key, the key without its
           `preselected_kpi_<n>_` prefix, then the slug itself.
        3. The canonical key.
        4. Legacy aliases, in order, then the `preselected_kpi_<n>_` spelling of
           the key and of each alias.

        The first non-blank candidate decides. A value that is not numeric makes
        the key absent and is reported as a coercion failure; it is never zero.
    """

    def __init__(
        self,
        field_mappings: Optional[Dict[str, str]] = None,
        kpi_fields: Optional[List[Dict[str, Any]]] = None,
    ):
        self.field_mappings = field_mappings or {}
        self.kpi_fields = [f for f in (kpi_fields or []) if isinstance(f, dict)]

    @property
    def has_mapping_config(self) -> bool:
        return bool(self.field_mappings or self.kpi_fields)

    # ---------------- candidates ----------------
    def _kpi_field_candidates(self, key: str) -> List[Tuple[str, str]]:
        candidates = []
        for entry in self.kpi_fields:
            slug = entry.get("selectedKpiSlug")
            if not slug or canonical_slug(slug) != key:
                continue
            payload_key = entry.get("key") or ""
            for candidate in (payload_key, PRESELECTED_PREFIX.sub("", payload_key), slug):
                if candidate:
                    candidates.append((candidate, "kpi_field"))
        return candidates

    def _candidates(self, key: str, payload: Dict[str, Any]) -> List[Tuple[str, str]]:
        candidates: List[Tuple[str, str]] = []
        mapped = self.field_mappings.get(key)
        if mapped:
            candidates.append((mapped, "mapping"))
        candidates.extend(self._kpi_field_candidates(key))
        candidates.append((key, "canonical"))

        aliases = LEGACY_ALIASES.get(key, ())
        for alias in aliases:
            candidates.append((alias, f"legacy:{alias}"))

        names = (key,) + aliases
        for payload_key in payload:
            if PRESELECTED_PREFIX.match(payload_key) and PRESELECTED_PREFIX.sub("", payload_key) in names:
                candidates.append((payload_key, "legacy:preselected_kpi"))
        return candidates

    def _first_present(self, key: str, payload: Dict[str, Any]) -> Optional[Tuple[str, str, Any]]:
        for payload_key, path in self._candidates(key, payload):
            raw = payload.get(payload_key)
            if not is_blank(raw):
                return payload_key, path, raw
        return None

    # ---------------- extraction ----------------
    def extract(self, payload: Optional[Dict[str, Any]]) -> ExtractionResult:
        payload = payload or {}
        result = ExtractionResult(had_mapping_config=self.has_mapping_config)

        for key in METRIC_KEYS:
            found = self._first_present(key, payload)
            if found is None:
                result.absent_keys.append(key)
                continue
            payload_key, path, raw = found
            try:
                result.values[key] = coerce_number(raw)
                result.key_sources[key] = path
            except CoercionError:
                logger.warning(
                    "Could not coerce %s (payload key %s) to a number: %r", key, payload_key, raw
                )
                result.absent_keys.append(key)
                result.coercion_failures.append({"key": key, "payload_key": payload_key, "raw": str(raw)})

        found = self._first_present("quoted_entity", payload)
        if found is not None:
            _, path, raw = found
            result.quoted_entity = str(raw).strip()
            result.key_sources["quoted_entity"] = path

        self._extract_custom(payload, result)
        return result

    def _extract_custom(self, payload: Dict[str, Any], result: ExtractionResult) -> None:
        """KPI fields whose slug is custom (or not a known metric) land in `custom_kpis`."""
        for entry in self.kpi_fields:
            slug = entry.get("selectedKpiSlug")
            if not slug or canonical_slug(slug) is not None:
                continue
            payload_key = entry.get("key") or ""
            raw = None
            for candidate in (payload_key, PRESELECTED_PREFIX.sub("", payload_key), slug):
                if candidate and not is_blank(payload.get(candidate)):
                    raw = payload[candidate]
                    break
            if raw is None:
                continue
            try:
                value = coerce_number(raw)
            except CoercionError:
                logger.warning("Could not coerce custom KPI %s to a number: %r", slug, raw)
                result.coercion_failures.append({"key": slug, "payload_key": payload_key, "raw": str(raw)})
                continue
            result.custom_kpis[slug] = float(value)
            result.key_sources[slug] = "kpi_field"
