"""
Multi: an immutable, ordered set of named operations.

A Multi groups changeset persistence, bulk writes and arbitrary functions so
they can be executed together inside one transaction. Building a Multi never
touches storage, so the whole sequence can be introspected with
``to_list()`` and unit tested before it runs.

Usage:
    multi = (
        Multi()
        .update("account", account_changeset)
        .insert("log", log_changeset)
        .delete_all("sessions", select(sessions).where(sessions.c.account_id == 1))
    )

    result = execute(multi, store)
    if result.is_ok:
        changes = result.value          # {"account": ..., "log": ..., "sessions": 3}
    else:
        failure = result.value          # ValidationFailure / OperationFailure
        failure.name, failure.value, failure.changes

Every builder call returns a new Multi; the receiver is left untouched.
Names must be unique within a Multi.
"""

from __future__ import annotations

from typing import Any, Callable, Hashable, Iterable, Mapping, Optional, Sequence

from ..changeset import Action, Changeset, Record
from ..errors import DuplicateNameError, NameCollisionError
from ..query import to_query
from .operations import (
    ChangesetFnOp,
    ChangesetOp,
    DeleteAllOp,
    InsertAllOp,
    Operation,
    RunOp,
    RunRefOp,
    UpdateAllOp,
)

Name = Hashable
Entry = tuple[Name, Operation]


class Multi:
    __slots__ = ("_operations", "_names")

    def __init__(self) -> None:
        self._operations: tuple[Entry, ...] = ()
        self._names: frozenset = frozenset()

    @classmethod
    def _from_parts(cls, operations: tuple[Entry, ...], names: frozenset) -> "Multi":
        multi = cls.__new__(cls)
        multi._operations = operations
        multi._names = names
        return multi

    @property
    def operations(self) -> tuple[Entry, ...]:
        """Raw (name, operation) pairs in declaration order."""
        return self._operations

    @property
    def names(self) -> frozenset:
        return self._names

    def __len__(self) -> int:
        return len(self._operations)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __repr__(self) -> str:
        names = [name for name, _ in self._operations]
        return f"Multi(names={names!r})"

    # -- changesets ----------------------------------------------------

    def insert(
        self,
        name: Name,
        changeset_or_fn: Changeset | Record | Callable[[dict], Changeset],
        **opts: Any,
    ) -> "Multi":
        """
        Add an insert of a changeset, a record, or a function building the
        changeset from the changes so far.
        """
        return self._add_changeset(Action.INSERT, name, changeset_or_fn, opts, allow_record=True)

    def update(
        self,
        name: Name,
        changeset_or_fn: Changeset | Callable[[dict], Changeset],
        **opts: Any,
    ) -> "Multi":
        """Add an update of a changeset or of a function building one."""
        return self._add_changeset(Action.UPDATE, name, changeset_or_fn, opts, allow_record=False)

    def delete(
        self,
        name: Name,
        changeset_or_fn: Changeset | Record | Callable[[dict], Changeset],
        **opts: Any,
    ) -> "Multi":
        """Add a delete of a changeset, a record, or a function building one."""
        return self._add_changeset(Action.DELETE, name, changeset_or_fn, opts, allow_record=True)

    def _add_changeset(
        self,
        action: Action,
        name: Name,
        value: Any,
        opts: Mapping[str, Any],
        allow_record: bool,
    ) -> "Multi":
        self._check_name(name)

        if isinstance(value, Record) and allow_record:
            value = Changeset.change(value)

        if isinstance(value, Changeset):
            return self._add(name, ChangesetOp(value.put_action(action), dict(opts)))
        if callable(value):
            return self._add(name, ChangesetFnOp(action, value, dict(opts)))

        expected = "a Changeset, a Record or a function" if allow_record else "a Changeset or a function"
        raise TypeError(f"{action.value} expects {expected}, got {type(value).__name__}")

    # -- functions -----------------------------------------------------

    def run(
        self,
        name: Name,
        fn: Callable[..., Any] | str,
        args: Optional[Sequence[Any]] = None,
    ) -> "Multi":
        """
        Add a function to run as part of the Multi.

        ``run(name, fn)`` calls ``fn(changes)``. ``run(name, ref, args)`` calls
        ``ref(changes, *args)``, where ``ref`` is a callable or a
        ``"package.module:function"`` path. Either must return ``Ok`` or ``Err``.
        """
        self._check_name(name)

        if args is None and callable(fn):
            return self._add(name, RunOp(fn))
        if callable(fn) or isinstance(fn, str):
            return self._add(name, RunRefOp(fn, tuple(args or ())))

        raise TypeError(f"run expects a callable or a 'module:function' path, got {type(fn).__name__}")

    # -- bulk operations -----------------------------------------------

    def insert_all(
        self,
        name: Name,
        target: Any,
        entries: Iterable[Mapping[str, Any]],
        **opts: Any,
    ) -> "Multi":
        self._check_name(name)
        op = InsertAllOp(target, tuple(dict(entry) for entry in entries), dict(opts))
        return self._add(name, op)

    def update_all(
        self,
        name: Name,
        queryable: Any,
        updates: Mapping[str, Any],
        **opts: Any,
    ) -> "Multi":
        self._check_name(name)
        if not isinstance(updates, Mapping):
            raise TypeError(f"update_all expects a mapping of updates, got {type(updates).__name__}")
        return self._add(name, UpdateAllOp(to_query(queryable), dict(updates), dict(opts)))

    def delete_all(self, name: Name, queryable: Any, **opts: Any) -> "Multi":
        self._check_name(name)
        return self._add(name, DeleteAllOp(to_query(queryable), dict(opts)))

    # -- composition ---------------------------------------------------

    def append(self, other: "Multi") -> "Multi":
        return append(self, other)

    def prepend(self, other: "Multi") -> "Multi":
        return prepend(self, other)

    def to_list(self) -> list[tuple[Name, tuple]]:
        return to_list(self)

    # -- internals -----------------------------------------------------

    def _check_name(self, name: Name) -> None:
        if name in self._names:
            raise DuplicateNameError(name)

    def _add(self, name: Name, operation: Operation) -> "Multi":
        self._check_name(name)
        return Multi._from_parts(
            self._operations + ((name, operation),),
            self._names | {name},
        )


def new() -> Multi:
    """Return an empty Multi."""
    return Multi()


def append(lhs: Multi, rhs: Multi) -> Multi:
    """
    Return ``lhs`` followed by ``rhs``.

    Raises:
        NameCollisionError: If both declare an operation with the same name
    """
    return _merge(lhs, rhs, lambda left, right: left + right)


def prepend(lhs: Multi, rhs: Multi) -> Multi:
    """
    Return ``rhs`` followed by ``lhs``.

    Raises:
        NameCollisionError: If both declare an operation with the same name
    """
    return _merge(lhs, rhs, lambda left, right: right + left)


def _merge(
    lhs: Multi,
    rhs: Multi,
    joiner: Callable[[tuple[Entry, ...], tuple[Entry, ...]], tuple[Entry, ...]],
) -> Multi:
    if not isinstance(lhs, Multi) or not isinstance(rhs, Multi):
        raise TypeError("append/prepend expect two Multi structs")

    common = lhs.names & rhs.names
    if common:
        raise NameCollisionError(common)

    return Multi._from_parts(joiner(lhs.operations, rhs.operations), lhs.names | rhs.names)


def to_list(multi: Multi) -> list[tuple[Name, tuple]]:
    """
    Return the operations in declaration order.

    Changeset operations are surfaced as ``(action, changeset, opts)``; other
    operations as their tagged tuples, e.g. ``("delete_all", query, opts)``.
    """
    return [(name, operation.as_tuple()) for name, operation in multi.operations]
