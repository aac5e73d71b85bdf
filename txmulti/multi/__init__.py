from .executor import execute
from .multi import Multi, append, new, prepend, to_list
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
from .failures import Failure, OperationFailure, ValidationFailure
from .validator import validate

__all__ = [
    "Multi",
    "new",
    "append",
    "prepend",
    "to_list",
    "execute",
    "validate",
    "Operation",
    "ChangesetOp",
    "ChangesetFnOp",
    "RunOp",
    "RunRefOp",
    "InsertAllOp",
    "UpdateAllOp",
    "DeleteAllOp",
    "Failure",
    "ValidationFailure",
    "OperationFailure",
]
