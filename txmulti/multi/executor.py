from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, Sequence

from ..changeset import Action, Changeset
from ..config import ExecutorConfig
from ..result import Err, Ok, Result, is_result
from ..store import DataStore
from .failures import OperationFailure
from .metrics import observe_execution, observe_operation
from .multi import Multi
from .operations import (
    ChangesetFnOp,
    ChangesetOp,
    DeleteAllOp,
    InsertAllOp,
    Operation,
    RunOp,
    RunRefOp,
    UpdateAllOp,
    operation_kind,
)
from .validator import validate

logger = logging.getLogger(__name__)

Wrap = Callable[[Callable[[], Any]], Any]
OnFailure = Callable[[OperationFailure], Any]


def execute(
    multi: Multi,
    store: DataStore,
    wrap: Optional[Wrap] = None,
    on_failure: Optional[OnFailure] = None,
    config: Optional[ExecutorConfig] = None,
) -> Result:
    """
    Execute every operation of a Multi, in order, as one transaction.

    Args:
        multi: The operations to run
        store: Data store performing persistence and bulk writes
        wrap: Transaction boundary; defaults to ``store.transaction``. It
            must run the procedure, commit on ``Ok``, roll back on ``Err``
            and return the procedure's value unchanged.
        on_failure: Called with the ``OperationFailure`` of the first step
            returning ``Err``; its return value becomes the procedure's
            value. Defaults to ``Err``. The failure carries the step name,
            its error value and the changes so far; ``failure.as_tuple()``
            gives them as a ``(name, value, changes)`` triple.
        config: Executor options

    Returns:
        ``Ok(changes)`` mapping each operation name to its result,
        ``Err(ValidationFailure)`` if a changeset was invalid before the
        transaction started (``wrap`` is never called), or whatever
        ``wrap`` returned for a failed operation, ``Err(OperationFailure)``
        with the default hooks.

    Exceptions raised by the store, by bulk operations or by user functions
    propagate unchanged.
    """
    config = config or ExecutorConfig()
    wrap = wrap or store.transaction
    on_failure = on_failure or Err

    start_time = time.monotonic()
    status = "exception"

    try:
        validated = validate(multi.operations)
        if not validated.is_ok:
            status = "validation_error"
            return validated

        def procedure() -> Any:
            return _apply_operations(validated.value, store, on_failure, config)

        result = wrap(procedure)
        status = "ok" if isinstance(result, Ok) else "operation_error"
        return result
    finally:
        if config.emit_metrics:
            _observe(observe_execution, status, time.monotonic() - start_time)


def _apply_operations(
    operations: Sequence[tuple[Any, Operation]],
    store: DataStore,
    on_failure: OnFailure,
    config: ExecutorConfig,
) -> Any:
    changes: dict = {}

    for name, operation in operations:
        kind = operation_kind(operation)
        logger.debug("Running operation %r (%s)", name, kind)

        result = _apply_operation(operation, dict(changes), store)
        if not is_result(result):
            raise TypeError(
                f"operation {name!r} ({kind}) must return Ok or Err, got {result!r}"
            )

        if isinstance(result, Err):
            logger.info("Operation %r (%s) failed: %r", name, kind, result.value)
            if config.emit_metrics:
                _observe(observe_operation, kind, "error")
            return on_failure(OperationFailure(name, result.value, dict(changes)))

        if config.emit_metrics:
            _observe(observe_operation, kind, "success")
        changes[name] = result.value

    return Ok(changes)


def _apply_operation(operation: Operation, changes: dict, store: DataStore) -> Any:
    if isinstance(operation, ChangesetOp):
        return _persist(store, operation.changeset, operation.opts)

    if isinstance(operation, ChangesetFnOp):
        changeset = operation.fn(changes)
        if not isinstance(changeset, Changeset):
            raise TypeError(
                f"changeset function must return a Changeset, got {type(changeset).__name__}"
            )
        return _persist(store, changeset.put_action(operation.action), operation.opts)

    if isinstance(operation, RunOp):
        return operation.fn(changes)

    if isinstance(operation, RunRefOp):
        return operation.resolve()(changes, *operation.args)

    if isinstance(operation, InsertAllOp):
        return Ok(store.insert_all(operation.target, operation.entries, operation.opts))

    if isinstance(operation, UpdateAllOp):
        return Ok(store.update_all(operation.query, operation.updates, operation.opts))

    if isinstance(operation, DeleteAllOp):
        return Ok(store.delete_all(operation.query, operation.opts))

    raise TypeError(f"Unsupported operation: {operation!r}")


def _persist(store: DataStore, changeset: Changeset, opts: Any) -> Any:
    if changeset.action == Action.INSERT:
        return store.insert(changeset, opts)
    if changeset.action == Action.UPDATE:
        return store.update(changeset, opts)
    if changeset.action == Action.DELETE:
        return store.delete(changeset, opts)
    raise ValueError(f"Unsupported changeset action: {changeset.action}")


def _observe(fn: Callable[..., None], *args: Any) -> None:
    # metric errors must not mask real errors
    try:
        fn(*args)
    except Exception:
        logger.debug("Failed to record metric via %s", fn.__name__, exc_info=True)
