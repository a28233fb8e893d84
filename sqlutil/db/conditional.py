"""Conditional insert — insert a row only when no row with the same key exists.

``insert_if_not_exists`` probes with a SELECT on the caller's thread and,
when nothing matches, hands the INSERT to the background executor. It needs
no primary key or engine-specific upsert syntax, but two concurrent calls
for the same key can both see "no row" and both insert. Tables that have a
unique constraint on the key should use ``insert_or_ignore`` instead, which
lets the engine resolve the conflict.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Any, Callable, Sequence

from sqlalchemy.exc import SQLAlchemyError

from sqlutil.db.statement import BoundStatement, ResultSet, build_statement, prepare_statement
from sqlutil.errors import ResourceReleaseError, SQLUtilError
from sqlutil.tasks.executor import AsyncExecutor, ExecutionResult

logger = logging.getLogger(__name__)


def _check_columns(columns: Sequence[str], args: Sequence[Any]) -> None:
    if len(columns) != len(args):
        raise ValueError(
            f"{len(columns)} column name(s) but {len(args)} value(s): {list(columns)!r}"
        )


def build_insert_sql(
    table: str, columns: Sequence[str], quote: Callable[[str], str] = str
) -> str:
    """``INSERT INTO table(c1, c2) VALUES(?, ?)`` with one placeholder per column."""
    column_list = ", ".join(quote(c) for c in columns)
    placeholders = ", ".join("?" for _ in columns)
    return f"INSERT INTO {table}({column_list}) VALUES({placeholders})"


def insert_if_not_exists(
    executor: AsyncExecutor,
    keep_open: bool,
    table: str,
    select: str,
    where: str,
    value: Any,
    columns: Sequence[str],
    args: Sequence[Any],
) -> ResultSet | None:
    """Insert ``args`` into ``columns`` of ``table`` unless ``where = value`` already matches.

    Args:
        executor: Executor that runs the insert in the background.
        keep_open: Return the matching rows instead of closing them.
        table: Table to probe and insert into.
        select: Select list for the probe, e.g. ``"*"`` or ``"id, name"``.
        where: Key column compared against ``value``.
        value: Key value.
        columns: Columns to insert into, same length as ``args``.
        args: Values to insert, in column order.

    Returns:
        The probe's ``ResultSet`` positioned on the first matching row when
        a row exists and ``keep_open`` is true (the caller must close it),
        otherwise None. None is also returned after a logged failure.

    Raises:
        ValueError: ``columns`` and ``args`` differ in length.
    """
    _check_columns(columns, args)
    context = executor.context
    quote = context.profile.quote_identifier
    template = f"SELECT {select} FROM {table} WHERE {quote(where)} = ?"

    try:
        statement = build_statement(context, template, (value,))
    except SQLUtilError as e:
        logger.error("Failed to prepare probe for %s: %s", table, e, exc_info=True)
        return None

    result_set: ResultSet | None = None
    try:
        result = statement.execute_query()
        with statement.lock:
            first = result.fetchone()

        if first is None:
            insert = build_insert_sql(table, columns, quote)
            executor.update(insert, *args)
            return None

        result_set = ResultSet(statement, result, first)
        return result_set if keep_open else None
    except (SQLUtilError, SQLAlchemyError) as e:
        logger.error("Conditional insert into %s failed: %s", table, e, exc_info=True)
        return None
    finally:
        if result_set is None or not keep_open:
            _release(statement)


def insert_or_ignore(
    executor: AsyncExecutor,
    table: str,
    columns: Sequence[str],
    args: Sequence[Any],
) -> Future[ExecutionResult]:
    """Engine-native insert-if-absent, submitted in the background.

    Relies on a unique constraint: SQLite uses ``INSERT OR IGNORE``,
    PostgreSQL ``ON CONFLICT DO NOTHING``. A row count of 0 means the row
    already existed.
    """
    _check_columns(columns, args)
    sql = executor.context.profile.insert_or_ignore_sql(table, list(columns))
    statement = prepare_statement(executor.context, sql, *args)
    return executor.run_update(statement)


def _release(statement: BoundStatement) -> None:
    try:
        statement.close()
    except ResourceReleaseError as e:
        logger.error("Failed to close probe statement: %s", e, exc_info=True)
