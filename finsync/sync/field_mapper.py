"""Map decoded Notion properties onto finance table columns."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..models.finance import EntityKind
from .fetcher import ExternalRecord
from .property_decoder import PropertyType, decode_property
from .schema_adapter import PropertySchema, title_property_key

log = logging.getLogger(__name__)

UNTITLED = "Untitled"

# Lowercased display name -> column, per entity kind. First match wins per property.
ASSET_FIELD_MAP: dict[str, str] = {
    "ticker": "symbol",
    "current price": "current_price",
    "summary": "summary",
}

PLACE_FIELD_MAP: dict[str, str] = {
    "tags": "place_type",
    "value [bank]": "balance",
    "value [usd]": "total_value",
}

INVESTMENT_FIELD_MAP: dict[str, str] = {
    "units": "quantity",
    "quantity": "quantity",
    "qty": "quantity",
    "price at buy": "purchase_price",
    "purchase price": "purchase_price",
    "buy price": "purchase_price",
    "date": "purchase_date",
    "purchase date": "purchase_date",
    "buy date": "purchase_date",
    "result": "current_value",
    "current value": "current_value",
    "value": "current_value",
    "current price": "current_price",
    "price": "current_price",
    "currency": "currency",
}

# Relation properties on investments: display name -> (foreign key column, target kind)
INVESTMENT_RELATIONS: dict[str, tuple[str, EntityKind]] = {
    "asset": ("asset_id", EntityKind.ASSET),
    "facet in nw": ("place_id", EntityKind.PLACE),
    "facets in nw": ("place_id", EntityKind.PLACE),
}

FIELD_MAPS: dict[EntityKind, dict[str, str]] = {
    EntityKind.ASSET: ASSET_FIELD_MAP,
    EntityKind.PLACE: PLACE_FIELD_MAP,
    EntityKind.INVESTMENT: INVESTMENT_FIELD_MAP,
}

_FLOAT_COLUMNS = frozenset({
    "current_price", "balance", "total_value", "quantity", "purchase_price", "current_value",
})
_TEXT_COLUMNS = frozenset({"symbol", "summary", "place_type", "currency"})


@dataclass
class PendingRelation:
    column: str
    target: EntityKind
    value: list[str]


@dataclass
class MappedRecord:
    """A decoded record, ready for upsert once its relations are resolved."""

    external_id: str
    row: dict[str, Any] = field(default_factory=dict)
    relations: list[PendingRelation] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.row.get("name") or UNTITLED


def to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.replace(",", "").strip())
        except ValueError:
            return None
    return None


def to_text(value: Any) -> str | None:
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse Notion date strings (`2024-01-15`, `...T10:00:00.000Z`) to aware datetimes."""
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _coerce(column: str, value: Any) -> Any:
    if column in _FLOAT_COLUMNS:
        return to_float(value)
    if column in _TEXT_COLUMNS:
        return to_text(value)
    if column == "purchase_date":
        return parse_timestamp(value)
    return value


def map_record(kind: EntityKind, schema: PropertySchema, record: ExternalRecord) -> MappedRecord:
    """Decode every schema property of `record` and fill the mapped columns.

    Mapped columns always start out empty so a property removed upstream is
    cleared on the next sync instead of keeping its old value.
    """
    field_map = FIELD_MAPS[kind]
    row: dict[str, Any] = {column: None for column in set(field_map.values())}

    title_key = title_property_key(schema)
    if title_key is not None:
        row["name"] = decode_property(record.properties.get(title_key), PropertyType.TITLE) or UNTITLED
    else:
        row["name"] = UNTITLED

    if kind in (EntityKind.ASSET, EntityKind.PLACE):
        row["icon_json"] = record.icon
    else:
        row["asset_id"] = None
        row["place_id"] = None

    mapped = MappedRecord(external_id=record.id, row=row)
    bag: dict[str, Any] = {}

    for key, entry in schema.items():
        raw = record.properties.get(key)
        if raw is None:
            continue
        value = decode_property(raw, entry.type)
        bag[entry.name] = value

        lowered = entry.name.strip().lower()
        column = field_map.get(lowered)
        if column is not None:
            row[column] = _coerce(column, value)
            continue

        if kind is EntityKind.INVESTMENT and lowered in INVESTMENT_RELATIONS:
            fk_column, target = INVESTMENT_RELATIONS[lowered]
            if entry.type_tag is not PropertyType.RELATION:
                log.warning(
                    "Investment %r has %r property of type %r, expected relation",
                    row["name"], entry.name, entry.type,
                )
                continue
            if not value:
                log.info("Investment %r has no %s relation", row["name"], target.value)
                continue
            mapped.relations.append(PendingRelation(column=fk_column, target=target, value=list(value)))

    row["properties_json"] = bag
    return mapped
