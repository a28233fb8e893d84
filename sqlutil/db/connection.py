"""Database connection management — one lazily opened, self-healing connection.

The context owns a single SQLAlchemy ``Connection``. Every acquisition goes
through ``get_connection()``, which re-validates the handle before reuse and
transparently reopens it after a network drop or an invalidated file
handle. All driver access is serialized on the context lock.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from sqlutil.config import AppConfig, DatabaseConfig, EngineKind
from sqlutil.db.profile import EngineProfile, default_profiles
from sqlutil.errors import DatabaseConnectionError

if TYPE_CHECKING:
    from sqlutil.tasks.host import Host

logger = logging.getLogger(__name__)

LIVENESS_QUERY = "SELECT 1"


class SQLContext:
    """Configuration state plus the connection manager for one database."""

    def __init__(
        self,
        host: Host | None = None,
        *,
        probe_timeout: float = 1.0,
        connect_timeout: float = 10.0,
    ):
        self.host = host
        self.profiles = default_profiles()
        self.profile: EngineProfile = self.profiles[EngineKind.EMBEDDED]
        self.username: str | None = None
        self.password: str | None = None
        self.probe_timeout = probe_timeout
        self.connect_timeout = connect_timeout
        self.lock = threading.RLock()
        self._engine: Engine | None = None
        self._connection: Connection | None = None

    @classmethod
    def from_config(cls, config: AppConfig | DatabaseConfig, host: Host | None = None) -> SQLContext:
        """Build a context and apply a config through the attribute surface."""
        db_config = config.database if isinstance(config, AppConfig) else config
        context = cls(
            host,
            probe_timeout=db_config.probe_timeout,
            connect_timeout=db_config.connect_timeout,
        )
        context.set_engine(db_config.engine)
        for key in ("address", "port", "name", "username", "password"):
            value = getattr(db_config, key)
            if value is not None:
                context.set_attribute(key, value)
        return context

    # ── configuration ────────────────────────────────────────────────────

    def set_host(self, host: Host) -> None:
        self.host = host

    def set_engine(self, kind: EngineKind) -> None:
        """Switch the active engine. Validation is deferred to connection time."""
        self.profile = self.profiles[EngineKind(kind)]

    def set_attribute(self, key: str, value: str) -> None:
        """Set one connection attribute.

        Recognized keys:
            port: server port (networked, default 5432)
            address: server host (networked, default localhost)
            name: database name, or file name for the embedded engine
            username, password: credentials (networked only)

        Unrecognized keys are ignored.
        """
        if key == "port":
            self.profile.port = value
        elif key == "address":
            self.profile.address = value
        elif key == "name":
            self.profile.name = value
        elif key == "username":
            self.username = value
        elif key == "password":
            self.password = value
        else:
            logger.debug("Ignoring unknown attribute %r", key)

    def connection_address(self) -> str:
        return self.profile.connection_address()

    # ── connection manager ───────────────────────────────────────────────

    def get_connection(self) -> Connection:
        """Return the live connection, replacing it first if it went stale.

        Raises:
            DatabaseConnectionError: no host, invalid profile, or the driver
                refused the connection.
        """
        with self.lock:
            if self.host is None:
                raise DatabaseConnectionError("no host configured")

            if self._connection is not None and not self._is_alive(self._connection):
                logger.info("Discarding stale connection to %s", self._engine_url())
                self._discard()

            if self._connection is None:
                self._connection = self._open()

            if self._connection is None:
                raise DatabaseConnectionError("connection was null")

            return self._connection

    def close(self) -> None:
        """Close the live connection, if any. Never called automatically."""
        with self.lock:
            self._discard()

    def _is_alive(self, conn: Connection) -> bool:
        if conn.closed or conn.invalidated:
            return False
        try:
            conn.exec_driver_sql(LIVENESS_QUERY).close()
        except SQLAlchemyError as e:
            logger.warning("Liveness probe failed: %s", e)
            return False
        return True

    def _discard(self) -> None:
        conn, engine = self._connection, self._engine
        self._connection = None
        self._engine = None
        if conn is not None:
            try:
                conn.close()
            except SQLAlchemyError as e:
                logger.debug("Ignoring error while closing stale connection: %s", e)
        if engine is not None:
            engine.dispose()

    def _open(self) -> Connection:
        profile = self.profile
        profile.validate()
        if profile.requires_network_address and not self.username:
            raise DatabaseConnectionError(f"{profile.kind.value} engine requires a username")

        address = profile.connection_address()
        logger.info("Opening connection to %s", address)
        try:
            self._engine = create_engine(
                address,
                poolclass=NullPool,
                isolation_level="AUTOCOMMIT",
                connect_args=self._connect_args(profile),
            )
            return self._engine.connect()
        except (SQLAlchemyError, ValueError, ImportError) as e:
            # ValueError: malformed address (e.g. a non-numeric port). ImportError: driver missing
            self._engine = None
            raise DatabaseConnectionError(f"could not connect to {address}: {e}") from e

    def _connect_args(self, profile: EngineProfile) -> dict[str, Any]:
        if profile.requires_network_address:
            probe_seconds = max(1, int(self.probe_timeout))
            return {
                "user": self.username,
                "password": self.password,
                "connect_timeout": max(1, int(self.connect_timeout)),
                # A silently dropped peer fails the liveness probe within
                # probe_timeout instead of blocking on the socket under the lock
                "keepalives": 1,
                "keepalives_idle": probe_seconds,
                "keepalives_interval": probe_seconds,
                "keepalives_count": 1,
                "tcp_user_timeout": int(self.probe_timeout * 1000),
            }
        # Background tasks share the connection; the context lock serializes access
        return {"check_same_thread": False, "timeout": self.probe_timeout}

    def _engine_url(self) -> str:
        if self._engine is None:
            return "<none>"
        return self._engine.url.render_as_string(hide_password=True)
