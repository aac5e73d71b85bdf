from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Sequence, Union

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql.expression import Executable

from .metrics import observe_db_write

logger = logging.getLogger(__name__)

Params = Union[Mapping[str, Any], Sequence[Mapping[str, Any]], None]


class DbTransaction:
    """
    Database transaction with explicit commit/rollback methods.

    The transaction begins on construction and must be explicitly
    committed or rolled back. After commit or rollback, the connection
    is closed and the transaction cannot be used again.

    Writes issued through ``execute(..., table=..., op_type=...)`` are
    tracked and reported as metrics once the transaction ends, with the
    status of the whole transaction.

    Usage:
        factory = DbFactory(engine)
        tx = factory.begin()
        try:
            tx.execute("INSERT INTO ...", {...}, table="orders", op_type="insert")
            tx.commit()
        except Exception:
            tx.rollback()
            raise
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._conn: Connection | None = None
        self._tx = None
        self._closed = False
        self._writes: list[dict[str, Any]] = []

        # Begin transaction immediately
        self._conn = self.engine.connect()
        self._tx = self._conn.begin()

    @property
    def closed(self) -> bool:
        return self._closed

    def _connection(self) -> Connection:
        """Get the active connection, raising if closed."""
        if self._closed or self._conn is None:
            raise RuntimeError("Transaction is closed")
        return self._conn

    def commit(self) -> None:
        """
        Commit the transaction and close the connection.

        Raises:
            RuntimeError: If transaction is already closed
        """
        if self._closed:
            raise RuntimeError("Transaction is already closed")

        status = "success"
        end_time = time.monotonic()

        try:
            if self._tx is not None:
                self._tx.commit()
        except Exception:
            status = "error"
            try:
                if self._tx is not None:
                    self._tx.rollback()
            except Exception:
                logger.warning("Rollback after failed commit also failed", exc_info=True)
            raise
        finally:
            self._close()
            self._emit_metrics(status, end_time)

    def rollback(self) -> None:
        """
        Rollback the transaction and close the connection.

        Raises:
            RuntimeError: If transaction is already closed
        """
        if self._closed:
            raise RuntimeError("Transaction is already closed")

        end_time = time.monotonic()

        try:
            if self._tx is not None:
                self._tx.rollback()
        finally:
            self._close()
            self._emit_metrics("error", end_time)

    def _close(self) -> None:
        self._closed = True
        if self._conn is not None:
            self._conn.close()

        self._conn = None
        self._tx = None

    def _emit_metrics(self, status: str, end_time: float) -> None:
        # metric errors must not mask real errors
        try:
            for write in self._writes:
                observe_db_write(
                    table=write["table"],
                    op_type=write["op_type"],
                    status=status,
                    latency_s=end_time - write["start_time"],
                )
        except Exception:
            logger.debug("Failed to record DB write metrics", exc_info=True)

    def execute(
        self,
        sql: str | Executable,
        params: Params = None,
        *,
        table: str | None = None,
        op_type: str | None = None,
    ) -> int:
        """
        Execute a non-SELECT statement and return affected row count.

        Args:
            sql: SQL string or SQLAlchemy statement
            params: Parameters, or a list of parameter sets for executemany
            table: Table name reported in write metrics
            op_type: "insert", "update" or "delete"; the write is tracked for
                metrics when set

        Raises:
            RuntimeError: If transaction is closed or rowcount is None
        """
        start_time = time.monotonic()

        conn = self._connection()
        stmt = text(sql) if isinstance(sql, str) else sql
        result = conn.execute(stmt, params or {})
        try:
            if result.rowcount is None:
                raise RuntimeError(
                    "execute() received None rowcount for statement. "
                    "This may indicate a DDL statement or unsupported operation type."
                )
            rowcount = int(result.rowcount)
        finally:
            result.close()

        if op_type is not None:
            self._writes.append({
                "start_time": start_time,
                "table": table or "unknown",
                "op_type": op_type,
            })

        return rowcount

    def execute_insert(
        self,
        sql: str | Executable,
        params: Mapping[str, Any],
        *,
        table: str,
    ) -> Any:
        """
        Execute a single-row INSERT and return the DB-generated row id, if any.
        """
        start_time = time.monotonic()

        conn = self._connection()
        stmt = text(sql) if isinstance(sql, str) else sql
        result = conn.execute(stmt, params)
        try:
            last_id = result.lastrowid
        finally:
            result.close()

        self._writes.append({"start_time": start_time, "table": table, "op_type": "insert"})
        return last_id


class DbFactory:
    """
    Factory for creating database transactions.

    Usage:
        factory = DbFactory(engine)
        tx = factory.begin()
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def begin(self) -> DbTransaction:
        """Begin a new transaction."""
        return DbTransaction(self.engine)
