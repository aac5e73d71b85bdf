from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence, Union

from sqlalchemy.sql import Select

from ..changeset import Action, Changeset


@dataclass(frozen=True)
class ChangesetOp:
    """Persist a fully built changeset; ``changeset.action`` is always set."""
    changeset: Changeset
    opts: Mapping[str, Any] = field(default_factory=dict)

    @property
    def action(self) -> Action:
        return self.changeset.action

    def as_tuple(self) -> tuple:
        return (self.changeset.action, self.changeset, dict(self.opts))


@dataclass(frozen=True)
class ChangesetFnOp:
    """Build the changeset from the changes so far, then persist it."""
    action: Action
    fn: Callable[[dict], Changeset]
    opts: Mapping[str, Any] = field(default_factory=dict)

    def as_tuple(self) -> tuple:
        return ("changeset_fun", self.action, self.fn, dict(self.opts))


@dataclass(frozen=True)
class RunOp:
    fn: Callable[[dict], Any]

    def as_tuple(self) -> tuple:
        return ("run", self.fn)


@dataclass(frozen=True)
class RunRefOp:
    """
    Call ``ref(changes, *args)``.

    ``ref`` is a callable or a ``"package.module:function"`` path, looked up
    only when the step runs.
    """
    ref: Union[Callable[..., Any], str]
    args: tuple = ()

    def resolve(self) -> Callable[..., Any]:
        if callable(self.ref):
            return self.ref
        module_name, sep, attr_path = self.ref.partition(":")
        if not sep or not module_name or not attr_path:
            raise ValueError(
                f"invalid callable reference {self.ref!r}; expected 'package.module:function'"
            )
        target: Any = importlib.import_module(module_name)
        for attr in attr_path.split("."):
            target = getattr(target, attr)
        if not callable(target):
            raise TypeError(f"{self.ref!r} does not reference a callable")
        return target

    def as_tuple(self) -> tuple:
        return ("run", self.ref, list(self.args))


@dataclass(frozen=True)
class InsertAllOp:
    target: Any  # table name or SQLAlchemy Table
    entries: Sequence[Mapping[str, Any]]
    opts: Mapping[str, Any] = field(default_factory=dict)

    def as_tuple(self) -> tuple:
        return ("insert_all", self.target, list(self.entries), dict(self.opts))


@dataclass(frozen=True)
class UpdateAllOp:
    query: Select
    updates: Mapping[str, Any]
    opts: Mapping[str, Any] = field(default_factory=dict)

    def as_tuple(self) -> tuple:
        return ("update_all", self.query, dict(self.updates), dict(self.opts))


@dataclass(frozen=True)
class DeleteAllOp:
    query: Select
    opts: Mapping[str, Any] = field(default_factory=dict)

    def as_tuple(self) -> tuple:
        return ("delete_all", self.query, dict(self.opts))


Operation = Union[
    ChangesetOp,
    ChangesetFnOp,
    RunOp,
    RunRefOp,
    InsertAllOp,
    UpdateAllOp,
    DeleteAllOp,
]


def operation_kind(op: Operation) -> str:
    """Short label used for logging and metrics."""
    if isinstance(op, ChangesetOp):
        return op.action.value
    if isinstance(op, ChangesetFnOp):
        return f"{op.action.value}_fun"
    return op.as_tuple()[0]
