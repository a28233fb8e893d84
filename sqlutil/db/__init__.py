"""Database layer — SQLite (embedded) or PostgreSQL (networked) over one connection."""

from sqlutil.db.connection import SQLContext
from sqlutil.db.statement import BoundStatement, ResultSet

__all__ = ["SQLContext", "BoundStatement", "ResultSet"]
