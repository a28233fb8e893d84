"""Async executor — fire-and-forget execution of bound statements on the host.

Every call returns a ``Future[ExecutionResult]`` that never raises. Callers
that only want best-effort persistence can ignore it; outcomes are always
logged either way.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any

from sqlutil.db.connection import SQLContext
from sqlutil.db.statement import BoundStatement, prepare_statement
from sqlutil.errors import (
    DatabaseConnectionError,
    ExecutionError,
    ResourceReleaseError,
    SQLUtilError,
)

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    ok: bool
    rowcount: int | None = None
    returned_rows: bool | None = None
    error: SQLUtilError | None = None


def _completed(result: ExecutionResult) -> Future[ExecutionResult]:
    future: Future[ExecutionResult] = Future()
    future.set_result(result)
    return future


class AsyncExecutor:
    """Submits statement execution to the context's host."""

    def __init__(self, context: SQLContext):
        self.context = context

    def run_execute(self, statement: BoundStatement | None) -> Future[ExecutionResult]:
        """Run ``statement.execute()`` in the background, then close it."""
        return self._submit(statement, update=False)

    def run_update(self, statement: BoundStatement | None) -> Future[ExecutionResult]:
        """Run ``statement.execute_update()`` in the background, then close it."""
        return self._submit(statement, update=True)

    def execute(self, template: str, *args: Any) -> Future[ExecutionResult]:
        return self.run_execute(prepare_statement(self.context, template, *args))

    def update(self, template: str, *args: Any) -> Future[ExecutionResult]:
        return self.run_update(prepare_statement(self.context, template, *args))

    def _submit(self, statement: BoundStatement | None, *, update: bool) -> Future[ExecutionResult]:
        if statement is None:
            # Preparation already failed and was logged
            return _completed(ExecutionResult(ok=False))

        host = self.context.host
        if host is None:
            error = DatabaseConnectionError("no host configured")
            logger.error("Cannot run %r: %s", statement.template, error)
            _close(statement)
            return _completed(ExecutionResult(ok=False, error=error))

        try:
            return host.submit(lambda: _run(statement, update))
        except RuntimeError as e:
            # Host shut down or its loop closed
            error = ExecutionError(f"host refused {statement.template!r}: {e}")
            logger.error("Cannot run %r: %s", statement.template, error)
            _close(statement)
            return _completed(ExecutionResult(ok=False, error=error))


def _run(statement: BoundStatement, update: bool) -> ExecutionResult:
    """Body of one background task: one database call, then release."""
    try:
        if update:
            rowcount = statement.execute_update()
            logger.debug("Update affected %d row(s): %s", rowcount, statement.template)
            return ExecutionResult(ok=True, rowcount=rowcount)
        returned_rows = statement.execute()
        return ExecutionResult(ok=True, returned_rows=returned_rows)
    except SQLUtilError as e:
        logger.error("Statement failed: %s", e, exc_info=True)
        return ExecutionResult(ok=False, error=e)
    finally:
        _close(statement)


def _close(statement: BoundStatement) -> None:
    try:
        statement.close()
    except ResourceReleaseError as e:
        logger.error("Failed to close statement: %s", e, exc_info=True)
