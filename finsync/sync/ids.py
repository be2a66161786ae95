"""External id normalization shared by diffing, relation lookup and upserts."""

from __future__ import annotations


def normalize_external_id(external_id: str | None) -> str:
    """Strip separator dashes so dashed and compact Notion ids compare equal.

    `"abc-123-def"` -> `"abc123def"`. Non-string input normalizes to `""`.
    """
    if not isinstance(external_id, str):
        return ""
    return external_id.strip().replace("-", "")


def same_external_id(a: str | None, b: str | None) -> bool:
    na = normalize_external_id(a)
    return bool(na) and na == normalize_external_id(b)
