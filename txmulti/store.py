from __future__ import annotations

from typing import Any, Callable, Mapping, Protocol, Sequence

from sqlalchemy.sql import Select

from .changeset import Changeset
from .result import Result


class DataStore(Protocol):
    """
    Protocol for the storage backend a Multi executes against.

    Persistence calls report their outcome as ``Ok`` / ``Err``. Bulk calls
    have no failure channel: they return a value or raise.
    """

    def insert(self, changeset: Changeset, opts: Mapping[str, Any]) -> Result:
        """Insert the changeset."""
        ...

    def update(self, changeset: Changeset, opts: Mapping[str, Any]) -> Result:
        """Update the record the changeset was built from."""
        ...

    def delete(self, changeset: Changeset, opts: Mapping[str, Any]) -> Result:
        """Delete the record the changeset was built from."""
        ...

    def insert_all(
        self,
        target: Any,
        entries: Sequence[Mapping[str, Any]],
        opts: Mapping[str, Any],
    ) -> Any:
        """Insert all entries into target."""
        ...

    def update_all(self, query: Select, updates: Mapping[str, Any], opts: Mapping[str, Any]) -> Any:
        """Update every row matched by query."""
        ...

    def delete_all(self, query: Select, opts: Mapping[str, Any]) -> Any:
        """Delete every row matched by query."""
        ...

    def transaction(self, procedure: Callable[[], Result]) -> Result:
        """
        Run procedure inside a transaction.

        Commits when it returns ``Ok``, rolls back when it returns ``Err`` or
        raises, and returns its value unchanged.
        """
        ...
