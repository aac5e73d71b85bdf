from .changeset import Action, Changeset, Record
from .config import DbConfig, ExecutorConfig
from .errors import (
    ActionConflictError,
    DuplicateNameError,
    NameCollisionError,
    Rollback,
    StaleRecordError,
    TxMultiError,
)
from .multi import (
    Multi,
    OperationFailure,
    ValidationFailure,
    append,
    execute,
    new,
    prepend,
    to_list,
)
from .query import to_query
from .result import Err, Ok, Result
from .store import DataStore

__all__ = [
    "Multi",
    "new",
    "append",
    "prepend",
    "to_list",
    "execute",
    "Action",
    "Changeset",
    "Record",
    "Ok",
    "Err",
    "Result",
    "DataStore",
    "ValidationFailure",
    "OperationFailure",
    "to_query",
    "DbConfig",
    "ExecutorConfig",
    "TxMultiError",
    "DuplicateNameError",
    "ActionConflictError",
    "NameCollisionError",
    "StaleRecordError",
    "Rollback",
]
