"""
Repository pattern: generic repository and unit of work over one async session.
"""

from .base import BaseRepository, IRepository, DEFAULT_ACTOR
from .unit_of_work import TransactionAbortedError, UnitOfWork

__all__ = ["BaseRepository", "IRepository", "UnitOfWork", "TransactionAbortedError", "DEFAULT_ACTOR"]
