import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from loguru import logger
from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

R = TypeVar("R")

BASE_RETRY_DELAY = 1.0  # seconds


def is_transient_error(exc: BaseException) -> bool:
    """Connection drops and operational failures are worth retrying; constraint errors are not."""
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return isinstance(exc, (OperationalError, InterfaceError))


def compute_retry_delay(attempt: int, max_delay: float) -> float:
    return min(max_delay, BASE_RETRY_DELAY * (2 ** max(attempt - 1, 0)))


class BaseDatabaseDriver(ABC):
    @abstractmethod
    async def connect(self):
        pass

    @abstractmethod
    async def disconnect(self):
        pass


class SQLDatabaseDriver(BaseDatabaseDriver):
    """Async SQLAlchemy engine for one relational backend.

    Subclasses decide the connection URL, engine options and whether
    transient failures are retried. The engine is created on first use so a
    driver can be built (and its configuration validated) without the
    backend's DBAPI module being importable.
    """

    provider_name = "sql"
    supports_retry = True

    def __init__(
        self,
        url: URL,
        echo: bool = False,
        enable_retry: bool = True,
        max_retry_count: int = 3,
        max_retry_delay: float = 30.0,
        command_timeout: int = 30,
    ):
        self.url = url
        self.echo = echo
        self.enable_retry = enable_retry and self.supports_retry
        self.max_retry_count = max_retry_count
        self.max_retry_delay = max_retry_delay
        self.command_timeout = command_timeout
        self._engine: Optional[AsyncEngine] = None
        self._session_factory = None

    def engine_options(self) -> Dict[str, Any]:
        """Extra keyword arguments for create_async_engine."""
        return {"pool_pre_ping": True}

    def on_engine_created(self, engine: AsyncEngine) -> None:
        """Hook for dialect specific engine events."""

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_async_engine(
                self.url, echo=self.echo, future=True, **self.engine_options()
            )
            self.on_engine_created(self._engine)
            logger.info(f"{self.provider_name} engine created for {self.url.render_as_string(hide_password=True)}")
        return self._engine

    @property
    def session_factory(self):
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                self.engine, class_=AsyncSession, expire_on_commit=False
            )
        return self._session_factory

    async def run_with_retry(self, operation: Callable[[], Awaitable[R]]) -> R:
        """Run a connection-level operation, retrying transient failures with backoff."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as exc:
                if not self.enable_retry or not is_transient_error(exc) or attempt > self.max_retry_count:
                    raise
                delay = compute_retry_delay(attempt, self.max_retry_delay)
                logger.warning(
                    f"{self.provider_name} transient failure (attempt {attempt}/{self.max_retry_count}), "
                    f"retrying in {delay:.1f}s: {exc}"
                )
                await asyncio.sleep(delay)

    async def connect(self):
        """Verify connectivity; transient failures are retried."""
        async def _ping():
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))

        await self.run_with_retry(_ping)
        logger.info(f"{self.provider_name} connection verified")

    async def disconnect(self):
        """Dispose the engine and its pooled connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    async def create_schema(self):
        """Create all registered tables (models must be imported beforehand)."""
        async def _create():
            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)

        await self.run_with_retry(_create)

    async def get_session(self):
        async with self.session_factory() as session:
            yield session
