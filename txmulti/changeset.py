from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .errors import ActionConflictError


class Action(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Record:
    """
    A single row, persisted or built in memory.
    """
    table: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)


@dataclass(frozen=True)
class Changeset:
    """
    A staged change to a record.

    ``data`` holds the current field values (including the primary key for
    updates and deletes), ``changes`` the field values to write. A changeset
    with any entry in ``errors`` is invalid and is never persisted.

    Changesets are immutable: every helper returns a new changeset.
    """
    table: str
    data: Mapping[str, Any] = field(default_factory=dict)
    changes: Mapping[str, Any] = field(default_factory=dict)
    errors: tuple[tuple[str, str], ...] = ()
    action: Optional[Action] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))
        object.__setattr__(self, "changes", MappingProxyType(dict(self.changes)))
        object.__setattr__(self, "errors", tuple(self.errors))
        if self.action is not None:
            object.__setattr__(self, "action", Action(self.action))

    @classmethod
    def change(cls, record: Record, **changes: Any) -> "Changeset":
        """Build a changeset for ``record``, no validation applied."""
        return cls(table=record.table, data=record.fields, changes=changes)

    @property
    def valid(self) -> bool:
        return not self.errors

    def put_action(self, action: Action | str) -> "Changeset":
        """
        Stamp the intended action.

        Raises:
            ActionConflictError: If a different action is already set
        """
        action = Action(action)
        if self.action is None:
            return replace(self, action=action)
        if self.action == action:
            return self
        raise ActionConflictError(self.action, action)

    def put_change(self, key: str, value: Any) -> "Changeset":
        changes = dict(self.changes)
        changes[key] = value
        return replace(self, changes=changes)

    def add_error(self, key: str, message: str) -> "Changeset":
        return replace(self, errors=self.errors + ((key, message),))

    def apply_changes(self) -> dict[str, Any]:
        merged = dict(self.data)
        merged.update(self.changes)
        return merged

    def to_record(self) -> Record:
        return Record(table=self.table, fields=self.apply_changes())
