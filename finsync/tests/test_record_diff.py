"""Test id normalization and the record diff."""

from __future__ import annotations

from finsync.sync.fetcher import ExternalRecord
from finsync.sync.ids import normalize_external_id, same_external_id
from finsync.sync.record_diff import diff_records


def test_normalize_strips_dashes_and_whitespace():
    assert normalize_external_id("abc-123-def") == "abc123def"
    assert normalize_external_id(" abc123def ") == "abc123def"
    assert normalize_external_id(None) == ""


def test_same_external_id_ignores_separators():
    assert same_external_id("abc-123", "abc123")
    assert not same_external_id("", "")
    assert not same_external_id("abc-123", "abc-124")


def test_diff_treats_dashed_and_compact_ids_as_equal():
    external = [ExternalRecord(id="abc-123-def"), ExternalRecord(id="new-1")]
    stored = ["abc123def", "gone-9"]

    diff = diff_records(external, stored)

    assert [r.id for r in diff.added] == ["new-1"]
    assert diff.removed == ["gone-9"]


def test_diff_keeps_stored_form_for_removed_ids():
    diff = diff_records([], ["legacy-dashed-id", "compact"])
    assert diff.removed == ["legacy-dashed-id", "compact"]


def test_diff_of_identical_sets_is_empty():
    external = [ExternalRecord(id="a-1"), ExternalRecord(id="b-2")]
    diff = diff_records(external, ["a1", "b2"])
    assert diff.added == []
    assert diff.removed == []
