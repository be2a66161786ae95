"""Decode typed Notion property values into plain column values.

Decoding is total: unknown type tags, missing values and malformed payloads
degrade to the documented default instead of raising, so one odd property
never aborts a record.
"""

from __future__ import annotations

import enum
from typing import Any


class PropertyType(str, enum.Enum):
    TITLE = "title"
    RICH_TEXT = "rich_text"
    NUMBER = "number"
    CHECKBOX = "checkbox"
    URL = "url"
    CREATED_TIME = "created_time"
    SELECT = "select"
    STATUS = "status"
    MULTI_SELECT = "multi_select"
    DATE = "date"
    RELATION = "relation"
    FORMULA = "formula"
    ROLLUP = "rollup"

    @classmethod
    def parse(cls, value: Any) -> "PropertyType | None":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _first_plain_text(runs: Any) -> str:
    items = _as_list(runs)
    if not items:
        return ""
    text = _as_dict(items[0]).get("plain_text")
    return text if isinstance(text, str) else ""


def _option_name(option: Any) -> str | None:
    name = _as_dict(option).get("name")
    return name if isinstance(name, str) else None


def _date_start(date_value: Any) -> str | None:
    start = _as_dict(date_value).get("start")
    return start if isinstance(start, str) else None


def _decode_dynamic(result: Any) -> Any:
    """Formula results and scalar rollups carry their own `type` discriminator."""
    data = _as_dict(result)
    kind = data.get("type")
    if kind == "number":
        return data.get("number")
    if kind == "string":
        return data.get("string")
    if kind == "boolean":
        return data.get("boolean")
    if kind == "date":
        return _date_start(data.get("date"))
    return None


def _decode_rollup(result: Any) -> Any:
    data = _as_dict(result)
    if data.get("type") != "array":
        return _decode_dynamic(data)

    items = [item for item in _as_list(data.get("array")) if isinstance(item, dict)]
    if not items:
        return None
    first = items[0]
    if first.get("type") == "number":
        return first.get("number")
    if first.get("type") == "relation":
        ids: list[str] = []
        for item in items:
            if isinstance(item.get("id"), str):
                ids.append(item["id"])
                continue
            for rel in _as_list(item.get("relation")):
                ref = _as_dict(rel).get("id")
                if isinstance(ref, str):
                    ids.append(ref)
        return ids
    return None


def decode_property(prop: Any, type_tag: PropertyType | str | None) -> Any:
    """Map one raw property payload to its normalized value.

    `prop` is the page's property object (e.g. `{"type": "number", "number": 3}`);
    the value lives under the key named after the type tag.
    """
    tag = PropertyType.parse(type_tag)
    data = _as_dict(prop)

    if tag in (PropertyType.TITLE, PropertyType.RICH_TEXT):
        return _first_plain_text(data.get(tag.value))
    if tag is PropertyType.CHECKBOX:
        return bool(data.get("checkbox") or False)
    if tag is PropertyType.NUMBER:
        value = data.get("number")
        return value if isinstance(value, (int, float)) and not isinstance(value, bool) else None
    if tag in (PropertyType.URL, PropertyType.CREATED_TIME):
        return data.get(tag.value) or None
    if tag in (PropertyType.SELECT, PropertyType.STATUS):
        return _option_name(data.get(tag.value))
    if tag is PropertyType.MULTI_SELECT:
        names = (_option_name(option) for option in _as_list(data.get("multi_select")))
        return [name for name in names if name is not None]
    if tag is PropertyType.DATE:
        return _date_start(data.get("date"))
    if tag is PropertyType.RELATION:
        refs = (_as_dict(rel).get("id") for rel in _as_list(data.get("relation")))
        return [ref for ref in refs if isinstance(ref, str)]
    if tag is PropertyType.FORMULA:
        return _decode_dynamic(data.get("formula"))
    if tag is PropertyType.ROLLUP:
        return _decode_rollup(data.get("rollup"))
    return None

