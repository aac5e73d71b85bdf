from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy import column, table
from sqlalchemy.sql.expression import TableClause

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _validate_identifier(name: str, identifier_type: str = "identifier", max_length: int = 64) -> str:
    """
    Validate that an identifier (table/column name) is safe for SQL interpolation.

    ⚠️ SECURITY CONTRACT ⚠️
    This validates identifier format only. Identifiers MUST still be trusted
    (hardcoded or validated at application boundaries), never raw user input.

    Returns:
        The validated identifier (unchanged if valid)

    Raises:
        TypeError: If identifier is not a string
        ValueError: If identifier contains unsafe characters or is too long

    Example:
        >>> _validate_identifier("orders", "table")
        'orders'
        >>> _validate_identifier("'; DROP TABLE--", "table")
        ValueError: Invalid table "'; DROP TABLE--": ...
    """
    if not isinstance(name, str):
        raise TypeError(f"{identifier_type} must be a string, got {type(name).__name__}")

    if not name:
        raise ValueError(f"{identifier_type} cannot be empty")

    if not _IDENTIFIER_RE.match(name):
        raise ValueError(
            f"Invalid {identifier_type} {name!r}: "
            "must start with letter/underscore and contain only alphanumeric characters and underscores"
        )

    if len(name) > max_length:
        raise ValueError(f"{identifier_type} {name!r} exceeds the {max_length}-character limit")

    return name


def build_insert_sql(table_name: str, columns: Sequence[str]) -> str:
    col_names = ", ".join(columns)
    placeholders = ", ".join(f":{c}" for c in columns)
    return f"INSERT INTO {table_name} ({col_names}) VALUES ({placeholders})"


def build_update_sql(table_name: str, columns: Sequence[str], id_column: str) -> str:
    set_clause = ", ".join(f"{c} = :{c}" for c in columns)
    return f"UPDATE {table_name} SET {set_clause} WHERE {id_column} = :_txmulti_id"


def build_delete_sql(table_name: str, id_column: str) -> str:
    return f"DELETE FROM {table_name} WHERE {id_column} = :_txmulti_id"


def ordered_columns(entries: Iterable[Mapping[str, Any]]) -> list[str]:
    """Union of the keys of all entries, in first-seen order."""
    seen: dict[str, None] = {}
    for entry in entries:
        for key in entry:
            seen.setdefault(key, None)
    return list(seen)


def table_with_columns(target: TableClause | str, columns: Sequence[str]) -> TableClause:
    """
    Return a table construct exposing ``columns``.

    Table objects and table clauses already carrying every column are
    returned as-is; otherwise a lightweight table clause is built.
    """
    if isinstance(target, TableClause):
        if all(c in target.c for c in columns):
            return target
        name = target.name
    else:
        name = target
    return table(name, *(column(c) for c in columns))
