from __future__ import annotations

from typing import Any, Iterable


class TxMultiError(Exception):
    """Base exception for txmulti errors."""


class DuplicateNameError(TxMultiError, ValueError):
    """An operation name is already registered in the Multi."""

    def __init__(self, name: Any) -> None:
        super().__init__(f"{name!r} is already a member of the Multi")
        self.name = name


class ActionConflictError(TxMultiError, ValueError):
    """A changeset already carries a different intended action."""

    def __init__(self, original: Any, action: Any) -> None:
        super().__init__(
            "you provided a changeset with an action already set "
            f"to {_action_label(original)!r} when trying to {_action_label(action)} it"
        )
        self.original = original
        self.action = action


class NameCollisionError(TxMultiError, ValueError):
    """Two Multi structs declare the same operation names."""

    def __init__(self, names: Iterable[Any]) -> None:
        self.names = sorted(names, key=repr)
        super().__init__(
            "error when merging Multi structs, "
            f"both declared operations: {self.names!r}"
        )


class StaleRecordError(TxMultiError):
    """An update or delete matched no rows."""


class Rollback(TxMultiError):
    """
    Raised to abort the active transaction with a value.

    ``SqlDataStore.transaction`` rolls back and returns ``Err(value)``.
    """

    def __init__(self, value: Any) -> None:
        super().__init__(f"transaction rolled back: {value!r}")
        self.value = value


def _action_label(action: Any) -> str:
    return getattr(action, "value", action)
