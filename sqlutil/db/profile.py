"""Engine profiles — per-engine connection attributes and address construction."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Dialect

from sqlutil.config import EngineKind
from sqlutil.errors import DatabaseConnectionError

DEFAULT_ADDRESS = "localhost"
DEFAULT_PORT = "5432"

_DIALECTS: dict[EngineKind, type[Dialect]] = {
    EngineKind.EMBEDDED: sqlite.dialect,
    EngineKind.NETWORKED: postgresql.dialect,
}


@dataclass
class EngineProfile:
    """Mutable connection attributes for one engine kind.

    ``address`` and ``port`` only matter for the networked engine; the
    embedded engine uses ``name`` as the database file name.
    """

    kind: EngineKind
    address: str = DEFAULT_ADDRESS
    port: str = DEFAULT_PORT
    name: str = ""

    @property
    def requires_network_address(self) -> bool:
        return self.kind.requires_network_address

    def connection_address(self) -> str:
        """Build the SQLAlchemy address for this profile. Pure, no validation."""
        if self.requires_network_address:
            return f"{self.kind.address_prefix}{self.address}:{self.port}/{self.name}"
        return f"{self.kind.address_prefix}{self.name}"

    def validate(self) -> None:
        """Raise DatabaseConnectionError if the profile cannot be connected to."""
        if not self.name:
            raise DatabaseConnectionError("database name is not set")
        if self.requires_network_address and not (self.address and self.port):
            raise DatabaseConnectionError(
                f"{self.kind.value} engine requires both address and port"
            )

    def quote_identifier(self, identifier: str) -> str:
        """Quote a column name for this engine's dialect, only where needed."""
        dialect = _DIALECTS[self.kind]()
        return dialect.identifier_preparer.quote(identifier)

    def insert_or_ignore_sql(self, table: str, columns: list[str]) -> str:
        """Native insert-if-absent statement (relies on a unique constraint)."""
        column_list = ", ".join(self.quote_identifier(c) for c in columns)
        placeholders = ", ".join("?" for _ in columns)
        if self.kind is EngineKind.NETWORKED:
            return (
                f"INSERT INTO {table}({column_list}) VALUES({placeholders}) "
                "ON CONFLICT DO NOTHING"
            )
        return f"INSERT OR IGNORE INTO {table}({column_list}) VALUES({placeholders})"


def default_profiles() -> dict[EngineKind, EngineProfile]:
    """One fresh profile per engine kind."""
    return {kind: EngineProfile(kind=kind) for kind in EngineKind}
