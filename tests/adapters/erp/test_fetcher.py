from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from loadtally.adapters.erp import FileSnapshotFetcher
from loadtally.domain.errors import ValidationError
from loadtally.domain.model import Category

if TYPE_CHECKING:
    from pathlib import Path


def test_reads_csv_export(tmp_path: Path) -> None:
    export = tmp_path / "asis.csv"
    export.write_text(
        "Serial #,Model #,CSO,LOAD NUMBER,Qty\nS1,M1,C1,L1,1\nS2,M2,,L1,2\n",
        encoding="utf-8",
    )

    rows = FileSnapshotFetcher(export)(Category.ASIS)

    assert [(row.serial, row.cso, row.qty) for row in rows] == [("S1", "C1", 1), ("S2", None, 2)]


def test_directory_resolves_export_by_category(tmp_path: Path) -> None:
    lines = [{"serial": "S1", "bucket": "L1"}, {"cso": "C9", "erp_status": "Available"}]
    (tmp_path / "FG.jsonl").write_text(
        "\n".join(json.dumps(line) for line in lines) + "\n\n",
        encoding="utf-8",
    )

    rows = FileSnapshotFetcher(tmp_path)(Category.FG)

    assert [(row.serial, row.cso, row.bucket, row.erp_status) for row in rows] == [
        ("S1", None, "L1", None),
        (None, "C9", None, "Available"),
    ]


def test_missing_export_is_a_validation_error(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        FileSnapshotFetcher(tmp_path)(Category.PARTS)


def test_invalid_row_reports_its_line(tmp_path: Path) -> None:
    export = tmp_path / "ASIS.csv"
    export.write_text("Serial #,Qty\nS1,1\nS2,-4\n", encoding="utf-8")

    with pytest.raises(ValidationError, match="row 2"):
        FileSnapshotFetcher(tmp_path)(Category.ASIS)


def test_malformed_json_line_is_rejected(tmp_path: Path) -> None:
    export = tmp_path / "ASIS.jsonl"
    export.write_text('{"serial": "S1"}\n[1, 2]\n', encoding="utf-8")

    with pytest.raises(ValidationError):
        FileSnapshotFetcher(export)(Category.ASIS)


def test_export_that_is_not_utf8_is_rejected(tmp_path: Path) -> None:
    export = tmp_path / "ASIS.csv"
    export.write_bytes(b"Serial #,Qty\nS\xff1,1\n")

    with pytest.raises(ValidationError, match="not UTF-8"):
        FileSnapshotFetcher(export)(Category.ASIS)
