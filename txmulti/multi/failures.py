from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Hashable


@dataclass(frozen=True)
class Failure:
    """
    Why a Multi did not complete.

    Attributes:
        name: Name of the failing operation
        value: The failure value (the invalid changeset, or the Err payload)
        changes: Results of the operations that succeeded before the failure
    """
    name: Hashable
    value: Any
    changes: dict = field(default_factory=dict)

    def as_tuple(self) -> tuple:
        return (self.name, self.value, self.changes)


@dataclass(frozen=True)
class ValidationFailure(Failure):
    """A changeset was invalid before the transaction was opened."""


@dataclass(frozen=True)
class OperationFailure(Failure):
    """An operation returned ``Err`` while the transaction was running."""
