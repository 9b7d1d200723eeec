"""Relational backend drivers, one per supported provider."""

from pathlib import Path
from typing import Any, Dict, Tuple

from sqlalchemy import event
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.pool import StaticPool

from framework.exceptions.handler import ConfigurationError
from .base import SQLDatabaseDriver


def parse_server_version(version: str) -> Tuple[int, ...]:
    """Parse a dotted server version such as '8.0.36'."""
    try:
        parts = tuple(int(p) for p in version.strip().split("."))
    except (AttributeError, ValueError):
        raise ConfigurationError(f"Invalid MySQL server version: {version!r}") from None
    if not parts:
        raise ConfigurationError(f"Invalid MySQL server version: {version!r}")
    return parts


class SqlServerDriver(SQLDatabaseDriver):
    provider_name = "SqlServer"

    def engine_options(self) -> Dict[str, Any]:
        options = super().engine_options()
        options["connect_args"] = {"timeout": self.command_timeout}
        return options


class MySQLDriver(SQLDatabaseDriver):
    provider_name = "MySQL"

    def __init__(self, url: URL, server_version: str = "8.0.0", **kwargs):
        self.server_version = parse_server_version(server_version)
        super().__init__(url, **kwargs)

    def engine_options(self) -> Dict[str, Any]:
        options = super().engine_options()
        options["connect_args"] = {"connect_timeout": self.command_timeout}
        # utf8mb4 requires 5.5.3+
        if self.server_version >= (5, 5, 3):
            options["connect_args"]["charset"] = "utf8mb4"
        return options


class PostgreSQLDriver(SQLDatabaseDriver):
    provider_name = "PostgreSQL"

    def engine_options(self) -> Dict[str, Any]:
        options = super().engine_options()
        options["connect_args"] = {"command_timeout": self.command_timeout}
        return options


class SQLiteDriver(SQLDatabaseDriver):
    """Embedded file storage; in-memory URLs share one connection."""

    provider_name = "SQLite"
    supports_retry = False

    def __init__(self, url: URL, enable_foreign_keys: bool = True, **kwargs):
        self.enable_foreign_keys = enable_foreign_keys
        super().__init__(url, **kwargs)

    @property
    def is_memory(self) -> bool:
        return self.url.database in (None, "", ":memory:")

    def engine_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "connect_args": {"check_same_thread": False, "timeout": self.command_timeout},
        }
        if self.is_memory:
            options["poolclass"] = StaticPool
        return options

    def on_engine_created(self, engine: AsyncEngine) -> None:
        if not self.enable_foreign_keys:
            return

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()


def sqlite_file_url(data_directory: str, filename: str) -> URL:
    """Build a file URL under data_directory, creating the directory if needed."""
    directory = Path(data_directory)
    if not directory.is_absolute():
        directory = Path.cwd() / directory
    directory.mkdir(parents=True, exist_ok=True)
    return URL.create("sqlite+aiosqlite", database=str(directory / filename))
