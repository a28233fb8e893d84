"""Tests for background execution of bound statements."""

from __future__ import annotations

import threading
from concurrent.futures import Future
from unittest.mock import patch

import pytest

from sqlutil.db.statement import BoundStatement, prepare_statement
from sqlutil.errors import DatabaseConnectionError, ExecutionError, ResourceReleaseError
from sqlutil.tasks.executor import AsyncExecutor, ExecutionResult
from sqlutil.tasks.host import ThreadPoolHost

TIMEOUT = 5


class RecordingHost:
    """Wraps a real host and records which thread ran each task."""

    def __init__(self, inner: ThreadPoolHost):
        self.inner = inner
        self.threads: list[int] = []

    def submit(self, fn):
        def wrapped():
            self.threads.append(threading.get_ident())
            return fn()

        return self.inner.submit(wrapped)


@pytest.fixture
def executor(context):
    return AsyncExecutor(context)


class TestRunUpdate:
    def test_inserts_and_closes(self, executor, context, users_table, fetch_all):
        stmt = prepare_statement(context, "INSERT INTO users(id, name) VALUES(?, ?)", 42, "Alice")
        result = executor.run_update(stmt).result(timeout=TIMEOUT)

        assert result == ExecutionResult(ok=True, rowcount=1)
        assert stmt.closed
        assert fetch_all("SELECT id, name FROM users") == [(42, "Alice")]

    def test_template_overload(self, executor, users_table, fetch_all):
        result = executor.update("INSERT INTO users(id, name) VALUES(?, ?)", 1, "Bob").result(
            timeout=TIMEOUT
        )
        assert result.ok
        assert fetch_all("SELECT name FROM users WHERE id = 1") == [("Bob",)]

    def test_failure_logged_not_raised(self, executor, context, caplog):
        stmt = prepare_statement(context, "UPDATE nowhere SET a = ?", 1)
        result = executor.run_update(stmt).result(timeout=TIMEOUT)

        assert not result.ok
        assert isinstance(result.error, ExecutionError)
        assert stmt.closed
        assert "Statement failed" in caplog.text

    def test_runs_off_caller_thread(self, context, host, users_table):
        recording = RecordingHost(host)
        context.set_host(recording)
        AsyncExecutor(context).update("INSERT INTO users(id) VALUES(?)", 1).result(timeout=TIMEOUT)

        assert len(recording.threads) == 1
        assert recording.threads[0] != threading.get_ident()


class TestRunExecute:
    def test_ddl(self, executor, context, fetch_all):
        stmt = prepare_statement(context, "CREATE TABLE events (id INTEGER)")
        result = executor.run_execute(stmt).result(timeout=TIMEOUT)

        assert result.ok
        assert result.returned_rows is False
        assert stmt.closed
        assert fetch_all("SELECT count(*) FROM events") == [(0,)]

    def test_query_reports_rows(self, executor):
        result = executor.execute("SELECT ?", 1).result(timeout=TIMEOUT)
        assert result.ok
        assert result.returned_rows is True


class TestMissingStatement:
    def test_none_is_noop(self, executor):
        future = executor.run_update(None)
        assert isinstance(future, Future)
        assert future.done()
        assert future.result() == ExecutionResult(ok=False)

    def test_prepare_failure_is_noop(self, executor, context):
        context.host = None
        result = executor.update("INSERT INTO users(id) VALUES(?)", 1).result(timeout=TIMEOUT)
        assert result == ExecutionResult(ok=False)


class TestRelease:
    def test_close_failure_reported_separately(self, executor, context, caplog):
        stmt = prepare_statement(context, "SELECT ?", 1)
        with patch.object(BoundStatement, "close", side_effect=ResourceReleaseError("boom")):
            result = executor.run_execute(stmt).result(timeout=TIMEOUT)

        assert result.ok
        assert "Failed to close statement" in caplog.text

    def test_close_failure_does_not_mask_execution_error(self, executor, context, caplog):
        stmt = prepare_statement(context, "DELETE FROM nowhere WHERE id = ?", 1)
        with patch.object(BoundStatement, "close", side_effect=ResourceReleaseError("boom")):
            result = executor.run_update(stmt).result(timeout=TIMEOUT)

        assert isinstance(result.error, ExecutionError)
        assert "Statement failed" in caplog.text
        assert "Failed to close statement" in caplog.text

    def test_host_removed_after_prepare(self, executor, context):
        stmt = prepare_statement(context, "SELECT ?", 1)
        context.host = None
        result = executor.run_execute(stmt).result(timeout=TIMEOUT)

        assert isinstance(result.error, DatabaseConnectionError)
        assert stmt.closed

    def test_host_shut_down_after_prepare(self, executor, context, host, caplog):
        stmt = prepare_statement(context, "SELECT ?", 1)
        host.shutdown(wait=True)

        future = executor.run_execute(stmt)

        assert future.done()
        result = future.result()
        assert not result.ok
        assert isinstance(result.error, ExecutionError)
        assert stmt.closed
        assert "Cannot run" in caplog.text

    def test_template_after_host_shutdown(self, executor, host, users_table):
        host.shutdown(wait=True)
        result = executor.update("INSERT INTO users(id) VALUES(?)", 1).result(timeout=TIMEOUT)
        assert isinstance(result.error, ExecutionError)
