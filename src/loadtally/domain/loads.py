"""Load metadata kept consistent with the inventory records that reference it."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from loadtally.domain.errors import (
    DuplicateLoad,
    InvalidScope,
    LoadNotFound,
)
from loadtally.domain.model import (
    UNSET,
    Load,
    LoadStatus,
    Unset,
    normalize_code,
    validate_load_name,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from loadtally.domain.context import OperationContext
    from loadtally.domain.model import Category, Maybe
    from loadtally.domain.ports import InventoryUnitOfWork

log = logging.getLogger(__name__)


class LoadRegistry:
    """Create, rename, merge and delete loads within a single category.

    Every mutation runs inside the caller's unit of work. Nothing here
    commits, so a rename or merge and its cascade land in one transaction.
    """

    def __init__(self, uow: InventoryUnitOfWork, context: OperationContext) -> None:
        self._uow = uow
        self._context = context

    @property
    def _tenant(self) -> str:
        return self._context.tenant_scope

    # Reads -----------------------------------------------------------------

    def get(self, category: Category, name: str) -> Load:
        load = self._uow.repositories.loads.get(self._tenant, category, validate_load_name(name))
        if load is None:
            raise LoadNotFound(category, name)
        return load

    def find(self, category: Category, name: str) -> Load | None:
        normalized = normalize_code(name)
        if normalized is None:
            return None
        return self._uow.repositories.loads.get(self._tenant, category, normalized)

    def list(self, category: Category | None = None, *, include_delivered: bool = False) -> list[Load]:
        """Loads of ``category`` and every category grouped under it."""

        categories = category.members() if category is not None else None
        loads = self._uow.repositories.loads.list(self._tenant, categories)
        if not include_delivered:
            loads = [load for load in loads if load.status is not LoadStatus.DELIVERED]
        return sorted(loads, key=lambda load: (load.category, load.name))

    def item_count(self, category: Category, name: str) -> int:
        return self._uow.repositories.items.count_in_scope(
            self._tenant, category, validate_load_name(name)
        )

    def validate_scope(self, category: Category, bucket: str | None) -> str | None:
        """Return the normalised bucket, or raise ``InvalidScope`` if it names no load."""

        normalized = normalize_code(bucket)
        if normalized is None:
            return None
        if self._uow.repositories.loads.get(self._tenant, category, normalized) is None:
            raise InvalidScope(category, normalized)
        return normalized

    def dangling_buckets(self, category: Category) -> set[str]:
        """Bucket names referenced by records of ``category`` that have no load."""

        referenced = self._uow.repositories.items.distinct_buckets(self._tenant, category)
        known = {load.name for load in self._uow.repositories.loads.list(self._tenant, [category])}
        return referenced - known

    # Mutations -------------------------------------------------------------

    def create(
        self,
        category: Category,
        name: str,
        *,
        status: LoadStatus = LoadStatus.ACTIVE,
        notes: str | None = None,
        friendly_name: str | None = None,
    ) -> Load:
        normalized = validate_load_name(name)
        loads = self._uow.repositories.loads
        if loads.get(self._tenant, category, normalized) is not None:
            raise DuplicateLoad(category, normalized)

        load = Load(
            tenant_scope=self._tenant,
            category=category,
            name=normalized,
            status=status,
            notes=notes,
            friendly_name=normalize_code(friendly_name),
            created_by=self._context.actor,
        )
        loads.add(load)
        self._uow.flush()
        log.info("Created load %s/%s", category, normalized)
        return load

    def ensure(self, category: Category, name: str) -> tuple[Load, bool]:
        """Return the load, creating it when missing; the flag says whether it was created."""

        existing = self.find(category, name)
        if existing is not None:
            return existing, False
        return self.create(category, name), True

    def rename(self, category: Category, old_name: str, new_name: str) -> Load:
        """Rename a load and repoint its records and sessions.

        When ``new_name`` exists and ``old_name`` does not, the rename has
        already been applied: records still on ``old_name`` are repointed and
        the existing load is returned.
        """

        old = validate_load_name(old_name)
        new = validate_load_name(new_name)
        repos = self._uow.repositories
        source = repos.loads.get(self._tenant, category, old)
        target = repos.loads.get(self._tenant, category, new)

        if old == new:
            if source is None:
                raise LoadNotFound(category, old)
            return source
        if target is not None and source is None:
            stragglers = repos.items.reassign_bucket(self._tenant, category, [old], new)
            repos.sessions.reassign_bucket(self._tenant, category, [old], new)
            self._uow.flush()
            log.info(
                "Rename %s/%s -> %s already applied (%s records repointed)",
                category,
                old,
                new,
                len(stragglers),
            )
            return target
        if target is not None:
            raise DuplicateLoad(category, new)
        if source is None:
            raise LoadNotFound(category, old)

        source.rename(new)
        moved = repos.items.reassign_bucket(self._tenant, category, [old], new)
        repos.sessions.reassign_bucket(self._tenant, category, [old], new)
        self._uow.flush()
        log.info("Renamed load %s/%s -> %s (%s records)", category, old, new, len(moved))
        return source

    def merge(
        self,
        category: Category,
        sources: Iterable[str],
        target: str,
        *,
        create_target_if_missing: bool = False,
    ) -> Load:
        """Repoint every record of ``sources`` to ``target``, then drop the source loads.

        The target's status is left as it is, whatever the sources' statuses.
        """

        target_name = validate_load_name(target)
        source_names = [
            name for name in dict.fromkeys(validate_load_name(s) for s in sources)
            if name != target_name
        ]
        repos = self._uow.repositories

        target_load = repos.loads.get(self._tenant, category, target_name)
        if target_load is None:
            if not create_target_if_missing:
                raise LoadNotFound(category, target_name)
            target_load = self.create(category, target_name)

        moved = repos.items.reassign_bucket(self._tenant, category, source_names, target_name)
        repos.sessions.reassign_bucket(self._tenant, category, source_names, target_name)
        for name in source_names:
            source_load = repos.loads.get(self._tenant, category, name)
            if source_load is not None:
                repos.loads.delete(source_load)
        self._uow.flush()
        log.info(
            "Merged %s into %s/%s (%s records)",
            source_names,
            category,
            target_name,
            len(moved),
        )
        return target_load

    def set_status(self, category: Category, name: str, status: LoadStatus) -> Load:
        load = self.get(category, name)
        load.advance(status)
        return load

    def update_metadata(
        self,
        category: Category,
        name: str,
        *,
        notes: Maybe[str | None] = UNSET,
        friendly_name: Maybe[str | None] = UNSET,
    ) -> Load:
        load = self.get(category, name)
        if notes is UNSET and friendly_name is UNSET:
            return load
        if not isinstance(notes, Unset):
            load.notes = notes
        if not isinstance(friendly_name, Unset):
            load.friendly_name = normalize_code(friendly_name)
        load.touch()
        return load

    def delete(self, category: Category, name: str, *, clear_items: bool) -> int:
        """Delete load metadata; returns how many records were detached.

        With ``clear_items=False`` the records keep the deleted name as a
        dangling bucket reference.
        """

        load = self.get(category, name)
        repos = self._uow.repositories
        detached = (
            repos.items.reassign_bucket(self._tenant, category, [load.name], None)
            if clear_items
            else []
        )
        repos.loads.delete(load)
        self._uow.flush()
        log.info(
            "Deleted load %s/%s (clear_items=%s, detached=%s)",
            category,
            load.name,
            clear_items,
            len(detached),
        )
        return len(detached)

