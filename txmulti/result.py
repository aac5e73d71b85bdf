"""
Tagged success/failure values.

Every persistence call and every ``run`` step reports its outcome as either
``Ok(value)`` or ``Err(value)``. The executor only ever branches on these two
shapes; any other return value from a step is a programming error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err(Generic[E]):
    value: E

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        raise ValueError(f"called unwrap() on an Err: {self.value!r}")


Result = Union[Ok[T], Err[E]]


def is_result(value: Any) -> bool:
    return isinstance(value, (Ok, Err))
