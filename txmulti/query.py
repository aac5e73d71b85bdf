from __future__ import annotations

from typing import Any

from sqlalchemy import literal_column, select, table
from sqlalchemy.sql import Select
from sqlalchemy.sql.expression import TableClause


def to_query(queryable: Any) -> Select:
    """
    Resolve a queryable into a SQLAlchemy ``Select``.

    Accepted queryables:
        - a ``Select``, returned as-is
        - a ``Table`` or lightweight ``TableClause``
        - a table name string
        - any object implementing ``__query__()`` returning one of the above

    Raises:
        TypeError: If the value cannot be turned into a query
    """
    if isinstance(queryable, Select):
        return queryable
    if isinstance(queryable, TableClause):
        return select(queryable)
    if isinstance(queryable, str):
        return select(literal_column("*")).select_from(table(queryable))

    to_query_fn = getattr(queryable, "__query__", None)
    if callable(to_query_fn):
        resolved = to_query_fn()
        if resolved is queryable:
            raise TypeError(f"{type(queryable).__name__}.__query__() returned itself")
        return to_query(resolved)

    raise TypeError(
        f"cannot convert {queryable!r} to a query; expected a Select, "
        "Table, table name or an object implementing __query__()"
    )


def query_table(query: Select) -> TableClause:
    """
    Return the single table a query selects from.

    Raises:
        ValueError: If the query does not select from exactly one table
    """
    froms = query.get_final_froms()
    if len(froms) != 1 or not isinstance(froms[0], TableClause):
        raise ValueError(
            f"bulk operations require a query over exactly one table, got {len(froms)} from clauses"
        )
    return froms[0]
