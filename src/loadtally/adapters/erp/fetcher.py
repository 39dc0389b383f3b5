"""Snapshot fetcher reading an exported ERP report from disk."""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, cast

from pydantic import ValidationError as PydanticValidationError

from loadtally.domain.errors import ValidationError

from .translator import parse_snapshot_row

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from loadtally.domain.model import Category
    from loadtally.domain.reconciliation import SnapshotRow

log = logging.getLogger(__name__)


class FileSnapshotFetcher:
    """Read one export per category: a CSV or a JSON-lines file.

    ``path`` may be a file or a directory holding ``<Category>.csv`` or
    ``<Category>.jsonl``.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def __call__(self, category: Category) -> list[SnapshotRow]:
        source = self._resolve(category)
        log.info("Reading %s snapshot from %s", category, source)
        rows: list[SnapshotRow] = []
        try:
            for line_number, payload in enumerate(self._records(source), start=1):
                try:
                    rows.append(parse_snapshot_row(payload))
                except PydanticValidationError as exc:
                    raise ValidationError(f"{source}: row {line_number} is invalid: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise ValidationError(f"{source}: export is not UTF-8 text") from exc
        except csv.Error as exc:
            raise ValidationError(f"{source}: malformed CSV: {exc}") from exc
        except OSError as exc:
            raise ValidationError(f"{source}: export cannot be read: {exc}") from exc
        log.info("Read %s rows for %s", len(rows), category)
        return rows

    def _resolve(self, category: Category) -> Path:
        if self.path.is_file():
            return self.path
        for suffix in (".csv", ".jsonl"):
            candidate = self.path / f"{category}{suffix}"
            if candidate.is_file():
                return candidate
        raise ValidationError(f"No snapshot export for {category} under {self.path}")

    def _records(self, source: Path) -> Iterator[Mapping[str, object]]:
        if source.suffix == ".csv":
            with source.open(newline="", encoding="utf-8-sig") as handle:
                yield from csv.DictReader(handle)
            return
        with source.open(encoding="utf-8") as handle:
            for line in handle:
                if not line.strip():
                    continue
                try:
                    loaded = json.loads(line)
                except json.JSONDecodeError as exc:
                    raise ValidationError(f"{source}: malformed JSON line") from exc
                if not isinstance(loaded, dict):
                    raise ValidationError(f"{source}: expected an object per line")
                yield cast("dict[str, object]", loaded)
