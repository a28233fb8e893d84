"""Shared fixtures — a thread-pool host and a SQLite-backed context per test."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from sqlutil.db.connection import SQLContext
from sqlutil.facade import SQLUtil
from sqlutil.tasks.host import ThreadPoolHost

USERS_SCHEMA = "CREATE TABLE users (id INTEGER, name TEXT)"


@pytest.fixture
def host():
    """Thread-pool host, shut down (waiting for queued work) after the test."""
    pool = ThreadPoolHost(max_workers=2)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def context(host, db_path):
    """Embedded-engine context pointing at a temporary database file."""
    ctx = SQLContext(host)
    ctx.set_attribute("name", str(db_path))
    yield ctx
    ctx.close()


@pytest.fixture
def sql(context):
    return SQLUtil(context)


@pytest.fixture
def users_table(sql):
    """Create the ``users`` table synchronously."""
    statement = sql.create_statement(USERS_SCHEMA)
    statement.execute()
    statement.close()
    return "users"


@pytest.fixture
def fetch_all(db_path: Path):
    """Read rows through an independent sqlite3 connection."""

    def _fetch(query: str, params: tuple = ()) -> list[tuple]:
        conn = sqlite3.connect(str(db_path))
        try:
            return conn.execute(query, params).fetchall()
        finally:
            conn.close()

    return _fetch
