"""Added/removed computation between an external fetch and stored rows."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .fetcher import ExternalRecord
from .ids import normalize_external_id


@dataclass
class RecordDiff:
    added: list[ExternalRecord] = field(default_factory=list)
    # Stored ids exactly as persisted, so they can be fed straight back into a delete.
    removed: list[str] = field(default_factory=list)


def diff_records(external: Iterable[ExternalRecord], stored_ids: Iterable[str]) -> RecordDiff:
    stored = list(stored_ids)
    stored_norm = {normalize_external_id(sid) for sid in stored}

    external_list = list(external)
    external_norm = {normalize_external_id(rec.id) for rec in external_list}

    diff = RecordDiff()
    seen: set[str] = set()
    for rec in external_list:
        norm = normalize_external_id(rec.id)
        if norm in stored_norm or norm in seen:
            continue
        seen.add(norm)
        diff.added.append(rec)

    diff.removed = [sid for sid in stored if normalize_external_id(sid) not in external_norm]
    return diff
