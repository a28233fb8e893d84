"""SQLUtil — one object bundling configuration, statements and background execution."""

from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Any, Sequence

from sqlutil.config import AppConfig, EngineKind
from sqlutil.db import conditional
from sqlutil.db.connection import SQLContext
from sqlutil.db.statement import BoundStatement, ResultSet, create_statement, prepare_statement
from sqlutil.tasks.executor import AsyncExecutor, ExecutionResult
from sqlutil.tasks.host import Host, ThreadPoolHost

logger = logging.getLogger(__name__)


class SQLUtil:
    """Facade over a single ``SQLContext``.

    Typical use::

        sql = SQLUtil()
        sql.set_host(ThreadPoolHost())
        sql.set_attribute("name", "data/app.db")
        sql.update("INSERT INTO users(id, name) VALUES(?, ?)", 42, "Alice")
    """

    def __init__(self, context: SQLContext | None = None):
        self.context = context or SQLContext()
        self.executor = AsyncExecutor(self.context)

    @classmethod
    def from_config(cls, config: AppConfig, host: Host | None = None) -> SQLUtil:
        return cls(SQLContext.from_config(config, host))

    def set_host(self, host: Host) -> None:
        self.context.set_host(host)

    def set_engine(self, kind: EngineKind) -> None:
        self.context.set_engine(kind)

    def set_attribute(self, key: str, value: str) -> None:
        self.context.set_attribute(key, value)

    def connection_address(self) -> str:
        return self.context.connection_address()

    def create_statement(self, sql: str) -> BoundStatement | None:
        return create_statement(self.context, sql)

    def prepare_statement(self, template: str, *args: Any) -> BoundStatement | None:
        return prepare_statement(self.context, template, *args)

    def execute(self, statement: BoundStatement | str | None, *args: Any) -> Future[ExecutionResult]:
        """Execute a prepared statement, or a template with arguments, in the background."""
        if isinstance(statement, str):
            return self.executor.execute(statement, *args)
        return self.executor.run_execute(statement)

    def update(self, statement: BoundStatement | str | None, *args: Any) -> Future[ExecutionResult]:
        """Run a write statement, or a template with arguments, in the background."""
        if isinstance(statement, str):
            return self.executor.update(statement, *args)
        return self.executor.run_update(statement)

    def insert_if_not_exists(
        self,
        keep_open: bool,
        table: str,
        select: str,
        where: str,
        value: Any,
        columns: Sequence[str],
        *args: Any,
    ) -> ResultSet | None:
        return conditional.insert_if_not_exists(
            self.executor, keep_open, table, select, where, value, columns, args
        )

    def insert_or_ignore(
        self, table: str, columns: Sequence[str], *args: Any
    ) -> Future[ExecutionResult]:
        return conditional.insert_or_ignore(self.executor, table, columns, args)

    def close(self) -> None:
        self.context.close()


# Module-level singleton
_sqlutil: SQLUtil | None = None


def get_sqlutil() -> SQLUtil:
    """Get the global SQLUtil instance."""
    if _sqlutil is None:
        raise RuntimeError("SQLUtil not initialized. Call init_sqlutil() first.")
    return _sqlutil


def init_sqlutil(config: AppConfig, host: Host | None = None) -> SQLUtil:
    """Initialize the global SQLUtil instance.

    Without a host, a thread pool sized by ``config.worker_threads`` is created.
    """
    global _sqlutil
    if host is None:
        host = ThreadPoolHost(max_workers=config.worker_threads)
    _sqlutil = SQLUtil.from_config(config, host)
    logger.info("SQLUtil initialized for %s", _sqlutil.connection_address())
    return _sqlutil
