from __future__ import annotations

from loadtally.domain.model import Category, MatchField, normalize_code
from tests.helpers.inventory import make_record


def test_code_for_returns_each_identifying_code() -> None:
    record = make_record(serial="S1", cso="C1", model="M1")

    assert record.code_for(MatchField.SERIAL) == "S1"
    assert record.code_for(MatchField.CSO) == "C1"
    assert record.code_for(MatchField.MODEL) == "M1"


def test_in_scope_without_bucket_covers_whole_category() -> None:
    record = make_record(Category.FG, bucket="L1")

    assert record.in_scope(Category.FG, None)
    assert record.in_scope(Category.FG, "L1")
    assert not record.in_scope(Category.FG, "L2")
    assert not record.in_scope(Category.ASIS, None)


def test_mark_scanned_is_idempotent() -> None:
    record = make_record(serial="S1")

    assert record.mark_scanned(actor="alice") is True
    first_scan = record.scanned_at
    assert record.mark_scanned(actor="bob") is False

    assert record.scanned_by == "alice"
    assert record.scanned_at == first_scan


def test_normalize_code_treats_blank_as_missing() -> None:
    assert normalize_code("  S1 ") == "S1"
    assert normalize_code("   ") is None
    assert normalize_code(None) is None
