"""Scan resolution against the unscanned working set.

Precedence is serial > cso > model. The first level with at least one
candidate decides the result, even when it is ambiguous and a lower level
would have been unique.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from loadtally.domain.errors import ItemNotFound
from loadtally.domain.model import MatchField, ScanResultKind, normalize_code, utcnow
from loadtally.domain.results import BulkResult, ScanResult

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from uuid import UUID

    from loadtally.domain.context import OperationContext
    from loadtally.domain.model import Category, InventoryRecord
    from loadtally.domain.ports import InventoryUnitOfWork

log = logging.getLogger(__name__)

MATCH_PRECEDENCE: tuple[MatchField, ...] = (MatchField.SERIAL, MatchField.CSO, MatchField.MODEL)


def pick_by_precedence(
    code: str,
    pool: Sequence[InventoryRecord],
    fields: Sequence[MatchField] = MATCH_PRECEDENCE,
) -> ScanResult:
    """Resolve ``code`` against an in-memory pool using field precedence."""

    for field in fields:
        candidates = [record for record in pool if record.code_for(field) == code]
        if not candidates:
            continue
        kind = ScanResultKind.UNIQUE if len(candidates) == 1 else ScanResultKind.MULTIPLE
        return ScanResult(kind=kind, items=tuple(candidates), matched_field=field)
    return ScanResult(kind=ScanResultKind.NOT_FOUND)


class MatchResolver:
    """Resolve scanned codes and flag records as scanned."""

    def __init__(self, uow: InventoryUnitOfWork, context: OperationContext) -> None:
        self._uow = uow
        self._context = context

    def resolve(self, code: str | None, category: Category | None = None) -> ScanResult:
        normalized = normalize_code(code)
        if normalized is None:
            return ScanResult(kind=ScanResultKind.NOT_FOUND)

        pool = self._uow.repositories.items.find_unscanned_by_code(
            self._context.tenant_scope, normalized, category=category
        )
        result = pick_by_precedence(normalized, pool)
        log.debug(
            "Resolved %r in %s: %s (%s candidates)",
            normalized,
            category or "all categories",
            result.kind,
            len(result.items),
        )
        return result

    def mark_scanned(self, item_id: UUID) -> bool:
        """Flag one record scanned; returns ``False`` when it already was."""

        items = self._uow.repositories.items
        if items.get(self._context.tenant_scope, item_id) is None:
            raise ItemNotFound(item_id)
        return items.mark_scanned(
            self._context.tenant_scope,
            item_id,
            actor=self._context.actor,
            at=utcnow(),
        )

    def mark_many_scanned(self, item_ids: Iterable[UUID]) -> BulkResult:
        requested = list(dict.fromkeys(item_ids))
        items = self._uow.repositories.items
        known = {
            record.id for record in items.get_many(self._context.tenant_scope, requested)
        }

        result = BulkResult()
        moment = utcnow()
        for item_id in requested:
            if item_id not in known:
                result.failed.append((item_id, ItemNotFound(item_id)))
                continue
            items.mark_scanned(
                self._context.tenant_scope, item_id, actor=self._context.actor, at=moment
            )
            result.succeeded.append(item_id)
        return result
