"""Category/bucket conversions with a best-effort history ledger."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from loadtally.domain.errors import InvalidScope, ItemNotFound, ValidationError
from loadtally.domain.model import UNSET, ConversionEntry, Unset, normalize_code, utcnow
from loadtally.domain.results import ConversionResult

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from uuid import UUID

    from loadtally.domain.context import OperationContext
    from loadtally.domain.model import Category, InventoryRecord, Maybe
    from loadtally.domain.ports import InventoryUnitOfWork

log = logging.getLogger(__name__)


class ConversionLedger:
    def __init__(self, uow: InventoryUnitOfWork, context: OperationContext) -> None:
        self._uow = uow
        self._context = context

    def record_conversion(
        self,
        item_ids: Iterable[UUID],
        to_category: Category,
        to_bucket: Maybe[str | None] = UNSET,
        *,
        notes: str | None = None,
    ) -> ConversionResult:
        """Move records to ``to_category`` (and ``to_bucket``), writing history first.

        ``UNSET`` keeps each record's bucket, which must then name a load of
        ``to_category`` or the record fails with ``InvalidScope``. ``None`` or a
        blank string clears it. A failed history write is logged and the records
        are still moved.
        """

        requested = list(dict.fromkeys(item_ids))
        if not requested:
            raise ValidationError("No inventory records given for conversion")
        target_bucket = self._resolve_target_bucket(to_category, to_bucket)

        tenant = self._context.tenant_scope
        records = {
            record.id: record
            for record in self._uow.repositories.items.get_many(tenant, requested)
        }
        result = ConversionResult()
        for item_id in requested:
            if item_id not in records:
                result.failed.append((item_id, ItemNotFound(item_id)))
        found = [records[item_id] for item_id in requested if item_id in records]
        if isinstance(target_bucket, Unset):
            found = self._keepable(found, to_category, result)
        if not found:
            return result

        result.ledger_written = self._write_entries(found, to_category, target_bucket, notes)

        moment = utcnow()
        for record in found:
            record.category = to_category
            if not isinstance(target_bucket, Unset):
                record.bucket = target_bucket
            record.touch(moment)
            result.succeeded.append(record.id)
        self._uow.flush()

        log.info(
            "Converted %s records to %s (failed=%s, ledger_written=%s)",
            len(result.succeeded),
            to_category,
            len(result.failed),
            result.ledger_written,
        )
        return result

    def history(self, item_id: UUID) -> list[ConversionEntry]:
        entries = self._uow.repositories.conversions.for_item(self._context.tenant_scope, item_id)
        return sorted(entries, key=lambda entry: entry.created_at, reverse=True)

    def between(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[ConversionEntry]:
        if start is not None and end is not None and start > end:
            raise ValidationError("Conversion history range start must be before end")
        return self._uow.repositories.conversions.between(self._context.tenant_scope, start, end)

    def stats(self) -> dict[tuple[Category, Category], int]:
        return self._uow.repositories.conversions.count_by_transition(self._context.tenant_scope)

    def _resolve_target_bucket(
        self,
        to_category: Category,
        to_bucket: Maybe[str | None],
    ) -> Maybe[str | None]:
        if isinstance(to_bucket, Unset):
            return UNSET
        normalized = normalize_code(to_bucket)
        if normalized is None:
            return None
        loads = self._uow.repositories.loads
        if loads.get(self._context.tenant_scope, to_category, normalized) is None:
            raise InvalidScope(to_category, normalized)
        return normalized

    def _keepable(
        self,
        records: list[InventoryRecord],
        to_category: Category,
        result: ConversionResult,
    ) -> list[InventoryRecord]:
        """Records whose kept bucket also names a load of ``to_category``."""
        loads = self._uow.repositories.loads
        tenant = self._context.tenant_scope
        known: dict[str, bool] = {}
        keepable: list[InventoryRecord] = []
        for record in records:
            bucket = record.bucket
            if bucket is None or record.category is to_category:
                keepable.append(record)
                continue
            if bucket not in known:
                known[bucket] = loads.get(tenant, to_category, bucket) is not None
            if known[bucket]:
                keepable.append(record)
            else:
                result.failed.append((record.id, InvalidScope(to_category, bucket)))
        return keepable

    def _write_entries(
        self,
        records: list[InventoryRecord],
        to_category: Category,
        target_bucket: Maybe[str | None],
        notes: str | None,
    ) -> bool:
        try:
            with self._uow.savepoint():
                for record in records:
                    self._uow.repositories.conversions.add(
                        ConversionEntry(
                            tenant_scope=self._context.tenant_scope,
                            item_id=record.id,
                            from_category=record.category,
                            to_category=to_category,
                            from_bucket=record.bucket,
                            to_bucket=(
                                record.bucket if isinstance(target_bucket, Unset) else target_bucket
                            ),
                            converted_by=self._context.actor,
                            notes=notes,
                        )
                    )
                self._uow.flush()
        except Exception:
            log.exception("Failed to write conversion history for %s records", len(records))
            return False
        return True
