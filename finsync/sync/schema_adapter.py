"""Fetch and normalize an external database's property definitions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..notion.client import NotionAPIError
from .property_decoder import PropertyType
from .sources import NotionSource

log = logging.getLogger(__name__)


class SchemaFetchError(Exception):
    pass


@dataclass(frozen=True)
class PropertySchemaEntry:
    name: str
    type: str

    @property
    def type_tag(self) -> PropertyType | None:
        return PropertyType.parse(self.type)


PropertySchema = dict[str, PropertySchemaEntry]


def parse_schema(payload: dict[str, Any]) -> PropertySchema:
    """Build `{property key: entry}` from a retrieve-database payload.

    Keys are the display names, which is also how page payloads key their
    property values.
    """
    props = payload.get("properties") if isinstance(payload, dict) else None
    if not isinstance(props, dict):
        return {}

    schema: PropertySchema = {}
    for key, definition in props.items():
        if not isinstance(key, str) or not isinstance(definition, dict):
            continue
        name = definition.get("name")
        type_tag = definition.get("type")
        schema[key] = PropertySchemaEntry(
            name=name if isinstance(name, str) and name else key,
            type=type_tag if isinstance(type_tag, str) else "",
        )
    return schema


def database_title(payload: dict[str, Any]) -> str | None:
    title = payload.get("title") if isinstance(payload, dict) else None
    if isinstance(title, list) and title and isinstance(title[0], dict):
        text = title[0].get("plain_text")
        if isinstance(text, str) and text:
            return text
    return None


def title_property_key(schema: PropertySchema) -> str | None:
    for key, entry in schema.items():
        if entry.type == PropertyType.TITLE.value:
            return key
    return None


async def fetch_schema(source: NotionSource, database_id: str) -> PropertySchema:
    try:
        payload = await source.retrieve_database(database_id)
    except (NotionAPIError, httpx.HTTPError) as exc:
        raise SchemaFetchError(f"Failed to fetch schema for database {database_id}: {exc}") from exc

    schema = parse_schema(payload)
    if not schema:
        raise SchemaFetchError(f"Database {database_id} returned no properties")

    log.debug("Fetched schema for %s (%d properties)", database_id, len(schema))
    return schema
