"""Error taxonomy for the data-access layer.

Public operations catch these at the boundary and log them; callers see
``None`` or a failed ``ExecutionResult`` instead of an exception.
"""

from __future__ import annotations


class SQLUtilError(Exception):
    """Base class for every error raised inside sqlutil."""


class DatabaseConnectionError(SQLUtilError):
    """No host configured, connection open/validation failed, or no handle."""


class PrepareError(SQLUtilError):
    """A statement template could not be prepared or bound."""


class ExecutionError(SQLUtilError):
    """Execute, update or query failed on an already prepared statement."""


class ResourceReleaseError(SQLUtilError):
    """Closing a connection, statement or result set failed."""
