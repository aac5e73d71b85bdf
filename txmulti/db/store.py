from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Mapping, Sequence, TypeVar

from sqlalchemy import delete as sa_delete
from sqlalchemy import insert as sa_insert
from sqlalchemy import update as sa_update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql import Select
from sqlalchemy.sql.expression import TableClause

from ..changeset import Changeset, Record
from ..config import DbConfig
from ..errors import Rollback, StaleRecordError
from ..query import query_table
from ..result import Err, Ok, Result
from .helpers import (
    _validate_identifier,
    build_delete_sql,
    build_insert_sql,
    build_update_sql,
    ordered_columns,
    table_with_columns,
)
from .tx import DbFactory, DbTransaction

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SqlDataStore:
    """
    Data store backed by a SQLAlchemy Engine.

    Implements the ``DataStore`` protocol: changesets are persisted by
    primary key (``DbConfig.id_column``), bulk operations are issued as
    SQLAlchemy Core statements, and ``transaction()`` is the wrap primitive
    used by ``execute``.

    Calls made inside ``transaction()`` share its transaction; calls made
    outside run in their own short transaction. The active transaction is
    tracked per thread, so one store can be shared between threads.

    Usage:
        store = SqlDataStore(engine)
        result = execute(multi, store)

        # Abort by raising instead of returning Err:
        result = execute(multi, store, on_failure=store.rollback)
    """

    def __init__(self, engine: Engine, db_config: DbConfig | None = None) -> None:
        self.engine = engine
        self.db_config = db_config or DbConfig()
        self._factory = DbFactory(engine)
        self._local = threading.local()

    @property
    def _tx(self) -> DbTransaction | None:
        return getattr(self._local, "tx", None)

    @_tx.setter
    def _tx(self, tx: DbTransaction | None) -> None:
        self._local.tx = tx

    @property
    def in_transaction(self) -> bool:
        return self._tx is not None

    # -- transaction boundary ------------------------------------------

    def transaction(self, procedure: Callable[[], Any]) -> Any:
        """
        Run procedure in a transaction.

        Commits when it returns ``Ok``; rolls back when it returns anything
        else, raises, or calls ``rollback()``. Returns the procedure's value
        unchanged (``Err(value)`` after ``rollback(value)``).

        Raises:
            RuntimeError: If a transaction is already active on this store in
                the calling thread
        """
        if self._tx is not None:
            raise RuntimeError("SqlDataStore transaction is already active; nested transactions are not allowed")

        tx = self._factory.begin()
        self._tx = tx
        try:
            result = procedure()
        except Rollback as exc:
            tx.rollback()
            return Err(exc.value)
        except Exception:
            tx.rollback()
            raise
        finally:
            self._tx = None

        if isinstance(result, Ok):
            tx.commit()
        else:
            tx.rollback()
        return result

    def rollback(self, value: Any) -> None:
        """
        Abort the active transaction; ``transaction()`` returns ``Err(value)``.

        Raises:
            RuntimeError: If no transaction is active
            Rollback: Always, when a transaction is active
        """
        if self._tx is None:
            raise RuntimeError("rollback() called outside of a transaction")
        raise Rollback(value)

    def _run(self, fn: Callable[[DbTransaction], T]) -> T:
        if self._tx is not None:
            return fn(self._tx)

        tx = self._factory.begin()
        try:
            value = fn(tx)
        except Exception:
            tx.rollback()
            raise
        if isinstance(value, Err):
            tx.rollback()
        else:
            tx.commit()
        return value

    # -- changesets ----------------------------------------------------

    def insert(self, changeset: Changeset, opts: Mapping[str, Any] | None = None) -> Result:
        """
        Insert the changeset's data merged with its changes.

        Returns ``Err(changeset)`` for invalid changesets and for integrity
        violations (duplicate keys, foreign keys, NOT NULL), with the
        violation recorded under the "constraint" error key.
        """
        if not changeset.valid:
            return Err(changeset)

        table_name = self._identifier(changeset.table, "table")
        fields = changeset.apply_changes()
        if not fields:
            raise ValueError(f"cannot insert an empty row into {table_name}")
        columns = [self._identifier(c, "column") for c in fields]
        sql = build_insert_sql(table_name, columns)

        def _insert(tx: DbTransaction) -> Result:
            try:
                last_id = tx.execute_insert(sql, fields, table=table_name)
            except IntegrityError as exc:
                error_msg = str(exc.orig) if exc.orig is not None else str(exc)
                logger.info("INSERT into %s violated a constraint: %s", table_name, error_msg)
                return Err(changeset.add_error("constraint", error_msg))

            row = dict(fields)
            if row.get(self.db_config.id_column) is None and last_id:
                row[self.db_config.id_column] = last_id
            return Ok(Record(table=changeset.table, fields=row))

        return self._run(_insert)

    def update(self, changeset: Changeset, opts: Mapping[str, Any] | None = None) -> Result:
        """
        Update the changed columns of the row identified by the changeset's
        primary key. A changeset without changes issues no SQL.

        Raises:
            StaleRecordError: If no row matched the primary key
        """
        if not changeset.valid:
            return Err(changeset)

        id_column = self.db_config.id_column
        columns = [c for c in changeset.changes if c != id_column]
        if not columns:
            return Ok(changeset.to_record())  # nothing to update

        table_name = self._identifier(changeset.table, "table")
        for col in columns:
            self._identifier(col, "column")
        id_value = self._primary_key(changeset)

        sql = build_update_sql(table_name, columns, self._identifier(id_column, "id_column"))
        params = {c: changeset.changes[c] for c in columns}
        params["_txmulti_id"] = id_value

        def _update(tx: DbTransaction) -> Result:
            rowcount = tx.execute(sql, params, table=table_name, op_type="update")
            if rowcount == 0:
                raise StaleRecordError(
                    f"attempted to update a stale row in {table_name} ({id_column}={id_value!r})"
                )
            return Ok(changeset.to_record())

        return self._run(_update)

    def delete(self, changeset: Changeset, opts: Mapping[str, Any] | None = None) -> Result:
        """
        Delete the row identified by the changeset's primary key.

        Raises:
            StaleRecordError: If no row matched the primary key
        """
        if not changeset.valid:
            return Err(changeset)

        table_name = self._identifier(changeset.table, "table")
        id_column = self._identifier(self.db_config.id_column, "id_column")
        id_value = self._primary_key(changeset)
        sql = build_delete_sql(table_name, id_column)

        def _delete(tx: DbTransaction) -> Result:
            rowcount = tx.execute(sql, {"_txmulti_id": id_value}, table=table_name, op_type="delete")
            if rowcount == 0:
                raise StaleRecordError(
                    f"attempted to delete a stale row in {table_name} ({id_column}={id_value!r})"
                )
            return Ok(Record(table=changeset.table, fields=changeset.data))

        return self._run(_delete)

    # -- bulk operations -----------------------------------------------

    def insert_all(
        self,
        target: TableClause | str,
        entries: Sequence[Mapping[str, Any]],
        opts: Mapping[str, Any] | None = None,
    ) -> int:
        """
        Insert all entries in one statement; returns the number of entries.
        Entries missing a column insert NULL for it.
        """
        if not entries:
            return 0

        columns = [self._identifier(c, "column") for c in ordered_columns(entries)]
        tbl = table_with_columns(target, columns)
        self._identifier(tbl.name, "table")
        rows = [{c: entry.get(c) for c in columns} for entry in entries]

        def _insert_all(tx: DbTransaction) -> int:
            tx.execute(sa_insert(tbl), rows, table=tbl.name, op_type="insert")
            return len(rows)

        return self._run(_insert_all)

    def update_all(
        self,
        query: Select,
        updates: Mapping[str, Any],
        opts: Mapping[str, Any] | None = None,
    ) -> int:
        """
        Update every row matched by query; returns the affected row count.

        ``updates`` maps "set" to column values and "inc" to increments:
            {"set": {"status": "closed"}, "inc": {"version": 1}}
        """
        unknown = set(updates) - {"set", "inc"}
        if unknown:
            raise ValueError(f"unsupported update_all keys {sorted(unknown)!r}; expected 'set' and/or 'inc'")

        set_values = dict(updates.get("set", {}))
        increments = dict(updates.get("inc", {}))
        if not set_values and not increments:
            raise ValueError("update_all requires at least one column to set or increment")

        columns = [self._identifier(c, "column") for c in [*set_values, *increments]]
        tbl = self._bulk_target(query, columns)

        values: dict[str, Any] = dict(set_values)
        for col, amount in increments.items():
            values[col] = tbl.c[col] + amount

        stmt = sa_update(tbl).values(values)
        if query.whereclause is not None:
            stmt = stmt.where(query.whereclause)

        return self._run(lambda tx: tx.execute(stmt, table=tbl.name, op_type="update"))

    def delete_all(self, query: Select, opts: Mapping[str, Any] | None = None) -> int:
        """Delete every row matched by query; returns the affected row count."""
        tbl = self._bulk_target(query, [])

        stmt = sa_delete(tbl)
        if query.whereclause is not None:
            stmt = stmt.where(query.whereclause)

        return self._run(lambda tx: tx.execute(stmt, table=tbl.name, op_type="delete"))

    # -- helpers -------------------------------------------------------

    def _identifier(self, name: str, identifier_type: str) -> str:
        return _validate_identifier(name, identifier_type, self.db_config.max_identifier_length)

    def _primary_key(self, changeset: Changeset) -> Any:
        id_value = changeset.data.get(self.db_config.id_column)
        if id_value is None:
            raise ValueError(
                f"changeset for {changeset.table} has no {self.db_config.id_column!r} value; "
                "update and delete need the primary key of a persisted row"
            )
        return id_value

    def _bulk_target(self, query: Select, columns: Sequence[str]) -> TableClause:
        source = query_table(query)
        self._identifier(source.name, "table")
        # UPDATE/DELETE only carry the WHERE clause over
        unsupported = [
            clause
            for clause, present in (
                ("LIMIT", query._limit_clause is not None),
                ("OFFSET", query._offset_clause is not None),
                ("ORDER BY", bool(query._order_by_clauses)),
                ("GROUP BY", bool(query._group_by_clauses)),
                ("HAVING", bool(query._having_criteria)),
                ("DISTINCT", bool(query._distinct or query._distinct_on)),
            )
            if present
        ]
        if unsupported:
            raise ValueError(
                f"query over {source.name} uses {', '.join(unsupported)}; "
                "bulk update and delete only support filtering with WHERE"
            )
        tbl = table_with_columns(source, columns)
        if tbl is not source and query.whereclause is not None:
            raise ValueError(
                f"query over {source.name} filters rows but does not declare columns "
                f"{list(columns)!r}; build it from a Table that defines them"
            )
        return tbl
