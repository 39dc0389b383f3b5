"""Explicit per-call context: which tenant the call is scoped to and who made it."""

from __future__ import annotations

from dataclasses import dataclass

from loadtally.domain.errors import ValidationError


@dataclass(frozen=True, slots=True)
class OperationContext:
    tenant_scope: str
    actor: str | None = None

    def __post_init__(self) -> None:
        if not self.tenant_scope or not self.tenant_scope.strip():
            raise ValidationError("tenant_scope must not be blank")
