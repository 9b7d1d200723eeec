"""
Unit of Work: manages repositories and transaction boundaries.
"""

from typing import Optional
from loguru import logger
from sqlmodel.ext.asyncio.session import AsyncSession
from .base import DEFAULT_ACTOR


class TransactionAbortedError(RuntimeError):
    """A save failed inside an explicit transaction; only rollback_transaction is allowed."""


class UnitOfWork:
    """Manages related repositories with a shared session and transaction commit/rollback.

    ``save_changes`` flushes everything staged by the repositories in one
    batch. Outside an explicit transaction it also commits; inside one
    (``begin_transaction``) the commit is deferred to ``commit_transaction``
    so several saves apply all-or-nothing.

    A failed save inside an explicit transaction rolls the session back and
    marks the transaction aborted. Until ``rollback_transaction`` is called,
    further saves and commits raise ``TransactionAbortedError``.
    """

    def __init__(self, session: Optional[AsyncSession] = None, actor: str = DEFAULT_ACTOR):
        """Initialize UnitOfWork; session must be provided."""
        if session is None:
            raise ValueError("Session must be provided.")

        self.session = session
        self.actor = actor
        self._repositories = {}
        self._in_transaction = False
        self._aborted = False
        self._closed = False

    def get_repository(self, repo_class):
        """Get or create a repository instance (cached per class)."""
        cache_key = repo_class.__name__
        if cache_key not in self._repositories:
            self._repositories[cache_key] = repo_class(self.session, actor=self.actor)
        return self._repositories[cache_key]

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    @property
    def aborted(self) -> bool:
        return self._aborted

    def _check_not_aborted(self) -> None:
        if self._aborted:
            raise TransactionAbortedError(
                "The transaction was aborted by a failed save; call rollback_transaction()"
            )

    def _pending_count(self) -> int:
        session = self.session
        modified = sum(1 for obj in session.dirty if session.is_modified(obj))
        return len(session.new) + modified + len(session.deleted)

    async def save_changes(self) -> int:
        """Flush staged changes; commit unless an explicit transaction is open. Returns affected rows."""
        self._check_not_aborted()
        affected = self._pending_count()
        try:
            await self.session.flush()
            if not self._in_transaction:
                await self.session.commit()
        except Exception:
            await self.session.rollback()
            if self._in_transaction:
                self._aborted = True
                logger.warning("Save failed; transaction aborted")
            raise
        logger.debug(f"Saved {affected} change(s)")
        return affected

    async def begin_transaction(self) -> None:
        if self._in_transaction:
            raise RuntimeError("A transaction is already in progress")
        self._in_transaction = True
        logger.debug("Transaction started")

    async def commit_transaction(self) -> None:
        if not self._in_transaction:
            return
        self._check_not_aborted()
        try:
            await self.session.commit()
        finally:
            self._in_transaction = False
        logger.debug("Transaction committed")

    async def rollback_transaction(self) -> None:
        if not self._in_transaction:
            return
        await self.rollback()
        logger.debug("Transaction rolled back")

    async def commit(self) -> None:
        """Commit all changes."""
        self._check_not_aborted()
        await self.session.commit()
        self._in_transaction = False

    async def rollback(self) -> None:
        """Rollback all changes."""
        await self.session.rollback()
        self._in_transaction = False
        self._aborted = False

    async def flush(self) -> None:
        """Flush session (e.g. to get auto-increment IDs)."""
        await self.session.flush()

    async def close(self) -> None:
        """Release the session, discarding any open transaction."""
        if self._closed:
            return
        if self._in_transaction:
            await self.rollback()
        await self.session.close()
        self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is not None or self._aborted:
                await self.rollback()
            elif self._in_transaction:
                await self.commit_transaction()
        finally:
            await self.close()
