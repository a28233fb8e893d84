"""Statement builder — positional ``?`` templates bound from untyped argument lists.

Each argument is matched against a closed table of bind kinds by its exact
runtime type; anything without an exact match is bound as its string form.
Templates are rewritten to SQLAlchemy named binds (``:p1``, ``:p2``...) so
the same template works on every supported driver.
"""

from __future__ import annotations

import datetime
import logging
import threading
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterator

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Connection, CursorResult, Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import TextClause
from sqlalchemy.types import (
    Boolean,
    Date,
    DateTime,
    Float,
    Integer,
    LargeBinary,
    NullType,
    Numeric,
    String,
    Time,
    TypeEngine,
)

from sqlutil.errors import (
    ExecutionError,
    PrepareError,
    ResourceReleaseError,
    SQLUtilError,
)

if TYPE_CHECKING:
    from sqlutil.db.connection import SQLContext

logger = logging.getLogger(__name__)

_QUOTES = ("'", '"', "`")


class BindKind(str, Enum):
    INTEGER = "integer"
    TEXT = "text"
    FLOAT = "float"
    BOOLEAN = "boolean"
    BINARY = "binary"
    DECIMAL = "decimal"
    DATETIME = "datetime"
    DATE = "date"
    TIME = "time"
    NULL = "null"
    FALLBACK = "fallback"

    def sql_type(self) -> TypeEngine:
        return _SQL_TYPES[self]()


_SQL_TYPES: dict[BindKind, type[TypeEngine]] = {
    BindKind.INTEGER: Integer,
    BindKind.TEXT: String,
    BindKind.FLOAT: Float,
    BindKind.BOOLEAN: Boolean,
    BindKind.BINARY: LargeBinary,
    BindKind.DECIMAL: Numeric,
    BindKind.DATETIME: DateTime,
    BindKind.DATE: Date,
    BindKind.TIME: Time,
    BindKind.NULL: NullType,
    BindKind.FALLBACK: String,
}

# Keyed by exact type: bool never matches INTEGER, datetime never matches DATE.
_KIND_BY_TYPE: dict[type, BindKind] = {
    bool: BindKind.BOOLEAN,
    int: BindKind.INTEGER,
    float: BindKind.FLOAT,
    str: BindKind.TEXT,
    bytes: BindKind.BINARY,
    bytearray: BindKind.BINARY,
    memoryview: BindKind.BINARY,
    Decimal: BindKind.DECIMAL,
    datetime.datetime: BindKind.DATETIME,
    datetime.date: BindKind.DATE,
    datetime.time: BindKind.TIME,
    type(None): BindKind.NULL,
}


@dataclass(frozen=True)
class Bind:
    """One resolved bind action: the kind chosen and the value actually bound."""

    position: int
    kind: BindKind
    value: Any

    @classmethod
    def for_value(cls, position: int, value: Any) -> Bind:
        kind = _KIND_BY_TYPE.get(type(value))
        if kind is None:
            return cls(position, BindKind.FALLBACK, str(value))
        if kind is BindKind.BINARY and not isinstance(value, bytes):
            value = bytes(value)
        return cls(position, kind, value)

    @property
    def name(self) -> str:
        return f"p{self.position}"


def rewrite_placeholders(template: str) -> tuple[str, int]:
    """Turn ``?`` placeholders into ``:pN`` binds and escape every literal colon.

    Question marks inside quoted literals or identifiers are left alone.
    Returns the rewritten SQL and the number of placeholders found.
    """
    out: list[str] = []
    count = 0
    quote: str | None = None
    for ch in template:
        if quote is not None:
            if ch == quote:
                quote = None
        elif ch in _QUOTES:
            quote = ch
        elif ch == "?":
            count += 1
            out.append(f":p{count}")
            continue

        if ch == ":":
            out.append("\\:")
            continue
        out.append(ch)
    return "".join(out), count


class BoundStatement:
    """A prepared statement: template, bind actions and the connection it runs on.

    Consumed once, then closed by whoever ran it.
    """

    def __init__(
        self,
        connection: Connection,
        lock: threading.RLock,
        template: str,
        clause: TextClause | None,
        binds: list[Bind],
    ):
        self.connection = connection
        self.lock = lock
        self.template = template
        self.clause = clause
        self.binds = binds
        self.closed = False
        self._result: CursorResult | None = None

    @property
    def values(self) -> list[Any]:
        return [b.value for b in self.binds]

    def _run(self) -> CursorResult:
        if self.closed:
            raise ExecutionError(f"statement is closed: {self.template}")
        try:
            with self.lock:
                if self.clause is None:
                    result = self.connection.exec_driver_sql(self.template)
                else:
                    result = self.connection.execute(self.clause)
        except SQLAlchemyError as e:
            raise ExecutionError(f"{e.__class__.__name__} running {self.template!r}: {e}") from e
        self._result = result
        return result

    def execute(self) -> bool:
        """Run the statement. True if it produced a result set."""
        return self._run().returns_rows

    def execute_update(self) -> int:
        """Run a write statement and return the affected row count."""
        return self._run().rowcount

    def execute_query(self) -> CursorResult:
        return self._run()

    def close(self) -> None:
        """Release the statement and any open result. Safe to call twice."""
        if self.closed:
            return
        self.closed = True
        result, self._result = self._result, None
        if result is None:
            return
        try:
            with self.lock:
                result.close()
        except SQLAlchemyError as e:
            raise ResourceReleaseError(f"closing result of {self.template!r}: {e}") from e

    def __repr__(self) -> str:
        return f"BoundStatement({self.template!r}, binds={self.binds!r})"


class ResultSet:
    """Rows returned by a probe query, with the cursor already on the first row.

    The caller owns it: ``close()`` releases both the rows and the parent
    statement. Usable as a context manager.
    """

    def __init__(self, statement: BoundStatement, result: CursorResult, first: Row):
        self.statement = statement
        self.row: Row | None = first
        self._result = result

    @property
    def closed(self) -> bool:
        return self.statement.closed

    def advance(self) -> bool:
        """Move to the next row. False once the rows are exhausted."""
        if self.closed:
            self.row = None
            return False
        with self.statement.lock:
            self.row = self._result.fetchone()
        return self.row is not None

    def __iter__(self) -> Iterator[Row]:
        while self.row is not None:
            yield self.row
            self.advance()

    def close(self) -> None:
        try:
            self.statement.close()
        except ResourceReleaseError as e:
            logger.error("Failed to close result set: %s", e, exc_info=True)

    def __enter__(self) -> ResultSet:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def build_statement(context: SQLContext, template: str, args: tuple[Any, ...]) -> BoundStatement:
    """Prepare and bind a template, raising on failure.

    Raises:
        DatabaseConnectionError: no connection could be obtained.
        PrepareError: the template could not be bound.
    """
    connection = context.get_connection()
    logger.info("Preparing statement: %s", template)
    try:
        sql, placeholders = rewrite_placeholders(template)
        binds: list[Bind] = []
        for position, arg in enumerate(args, start=1):
            if position > placeholders:
                logger.debug(
                    "Dropping %d extra argument(s) for %r", len(args) - placeholders, template
                )
                break
            binds.append(Bind.for_value(position, arg))

        clause = text(sql).bindparams(
            *(bindparam(b.name, b.value, type_=b.kind.sql_type()) for b in binds)
        )
    except Exception as e:
        raise PrepareError(f"could not prepare {template!r}: {e}") from e

    return BoundStatement(connection, context.lock, template, clause, binds)


def prepare_statement(context: SQLContext, template: str, *args: Any) -> BoundStatement | None:
    """Prepare ``template`` with positional ``args``. None (already logged) on failure."""
    try:
        return build_statement(context, template, args)
    except SQLUtilError as e:
        logger.error("Failed to prepare statement %r: %s", template, e, exc_info=True)
        return None


def create_statement(context: SQLContext, sql: str) -> BoundStatement | None:
    """Statement for plain SQL with no bind processing (create, alter, grant...)."""
    try:
        connection = context.get_connection()
    except SQLUtilError as e:
        logger.error("Failed to create statement %r: %s", sql, e, exc_info=True)
        return None
    return BoundStatement(connection, context.lock, sql, None, [])
