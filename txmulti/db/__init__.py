from .store import SqlDataStore
from .tx import DbFactory, DbTransaction

__all__ = [
    "SqlDataStore",
    "DbTransaction",
    "DbFactory",
]
