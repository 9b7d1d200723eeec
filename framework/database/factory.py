"""
Database provider selection: one closed set of backends, chosen once at startup.
"""

from enum import Enum
from typing import Union

from loguru import logger
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from framework.config import Settings
from framework.exceptions.handler import ConfigurationError
from .base import SQLDatabaseDriver
from .drivers import (
    MySQLDriver,
    PostgreSQLDriver,
    SQLiteDriver,
    SqlServerDriver,
    sqlite_file_url,
)


class DatabaseProvider(str, Enum):
    SQLSERVER = "sqlserver"
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"

    @classmethod
    def parse(cls, value: Union[str, "DatabaseProvider"]) -> "DatabaseProvider":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            supported = ", ".join(p.value for p in cls)
            raise ConfigurationError(
                f"Database provider {value!r} is not supported (expected one of: {supported})"
            ) from None


# Async drivername and default port per server provider
_SERVER_DEFAULTS = {
    DatabaseProvider.SQLSERVER: ("mssql+aioodbc", 1433),
    DatabaseProvider.MYSQL: ("mysql+aiomysql", 3306),
    DatabaseProvider.POSTGRESQL: ("postgresql+asyncpg", 5432),
}

# SQLAlchemy backend name and async DBAPI per provider
_DIALECTS = {
    DatabaseProvider.SQLSERVER: ("mssql", "aioodbc"),
    DatabaseProvider.MYSQL: ("mysql", "aiomysql"),
    DatabaseProvider.POSTGRESQL: ("postgresql", "asyncpg"),
    DatabaseProvider.SQLITE: ("sqlite", "aiosqlite"),
}

_DEFAULT_USERS = {
    DatabaseProvider.MYSQL: ("root", "password"),
    DatabaseProvider.POSTGRESQL: ("postgres", "password"),
}


def get_connection_url(settings: Settings) -> URL:
    """Resolve the connection URL: explicit connection string first, then provider defaults."""
    provider = DatabaseProvider.parse(settings.DB_PROVIDER)

    if settings.DB_CONNECTION_STRING:
        try:
            url = make_url(settings.DB_CONNECTION_STRING)
        except ArgumentError as e:
            raise ConfigurationError(f"Invalid DB_CONNECTION_STRING: {e}") from e
        return _async_url(provider, url)

    if provider is DatabaseProvider.SQLITE:
        return sqlite_file_url(settings.SQLITE_DATA_DIRECTORY, settings.SQLITE_DATABASE_FILE)

    drivername, default_port = _SERVER_DEFAULTS[provider]
    default_user, default_password = _DEFAULT_USERS.get(provider, (None, None))
    query = {}
    if provider is DatabaseProvider.SQLSERVER:
        query = {"driver": settings.SQLSERVER_ODBC_DRIVER, "TrustServerCertificate": "yes"}
        if not settings.DB_USER:
            query["Trusted_Connection"] = "yes"

    return URL.create(
        drivername,
        username=settings.DB_USER or default_user,
        password=settings.DB_PASSWORD or default_password,
        host=settings.DB_HOST,
        port=settings.DB_PORT or default_port,
        database=settings.DB_NAME,
        query=query,
    )


def _async_url(provider: DatabaseProvider, url: URL) -> URL:
    """Check a configured URL against the provider and pin an async DBAPI.

    A URL without an explicit driver (``sqlite:///x.db``) gets the provider's
    async default; any other explicit driver is rejected.
    """
    backend, async_driver = _DIALECTS[provider]
    if url.get_backend_name() != backend:
        raise ConfigurationError(
            f"DB_CONNECTION_STRING uses {url.get_backend_name()!r} but DB_PROVIDER is {provider.value!r}"
        )
    if "+" not in url.drivername:
        return url.set(drivername=f"{backend}+{async_driver}")
    driver = url.drivername.split("+", 1)[1]
    if driver != async_driver:
        raise ConfigurationError(
            f"DB_CONNECTION_STRING driver {driver!r} is not supported for {provider.value} (use {async_driver!r})"
        )
    return url


class DatabaseProviderFactory:
    """Builds the driver for the configured provider; fails fast on bad configuration."""

    @staticmethod
    def create(settings: Settings) -> SQLDatabaseDriver:
        provider = DatabaseProvider.parse(settings.DB_PROVIDER)
        url = get_connection_url(settings)
        common = dict(
            echo=settings.DB_ECHO,
            enable_retry=settings.DB_ENABLE_RETRY_ON_FAILURE,
            max_retry_count=settings.DB_MAX_RETRY_COUNT,
            max_retry_delay=settings.DB_MAX_RETRY_DELAY,
            command_timeout=settings.DB_COMMAND_TIMEOUT,
        )

        if provider is DatabaseProvider.SQLSERVER:
            driver = SqlServerDriver(url, **common)
        elif provider is DatabaseProvider.MYSQL:
            driver = MySQLDriver(url, server_version=settings.MYSQL_SERVER_VERSION, **common)
        elif provider is DatabaseProvider.POSTGRESQL:
            driver = PostgreSQLDriver(url, **common)
        else:
            driver = SQLiteDriver(url, enable_foreign_keys=settings.SQLITE_ENABLE_FOREIGN_KEYS, **common)

        logger.info(f"Database provider configured: {driver.provider_name}")
        return driver
