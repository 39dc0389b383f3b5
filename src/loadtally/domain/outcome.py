"""Tagged call outcomes returned across the application boundary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from loadtally.domain.errors import LoadTallyError


@dataclass(frozen=True, slots=True)
class Ok[T]:
    value: T
    status: Literal["ok"] = "ok"

    @property
    def ok(self) -> Literal[True]:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Err:
    error: LoadTallyError
    status: Literal["error"] = "error"

    @property
    def ok(self) -> Literal[False]:
        return False

    def unwrap(self) -> object:
        raise self.error


type Outcome[T] = Ok[T] | Err
