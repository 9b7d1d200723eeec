"""
Repository abstract base class and generic implementation.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar, Optional, List, Type, Any, Iterable
from sqlalchemy import ColumnElement
from sqlalchemy.sql import Select
from sqlmodel import SQLModel, select, func
from framework.models import utcnow

T = TypeVar("T", bound=SQLModel)

DEFAULT_ACTOR = "System"


class IRepository(ABC, Generic[T]):
    """Repository interface; defines standard data access API."""

    @abstractmethod
    async def get_by_id(self, id: int, include_deleted: bool = False) -> Optional[T]:
        """Get entity by ID."""
        pass

    @abstractmethod
    async def get_all(self, limit: Optional[int] = None, offset: int = 0) -> List[T]:
        """Get all entities (optionally paginated)."""
        pass

    @abstractmethod
    async def find(self, *criteria: ColumnElement[bool]) -> List[T]:
        """Get entities matching all criteria."""
        pass

    @abstractmethod
    async def add(self, entity: T) -> T:
        """Stage entity for insertion."""
        pass

    @abstractmethod
    async def update(self, entity: T) -> T:
        """Stage entity for update."""
        pass

    @abstractmethod
    async def delete(self, entity: T) -> None:
        """Stage entity for deletion."""
        pass

    @abstractmethod
    async def exists(self, id: int) -> bool:
        pass

    @abstractmethod
    async def count(self, *criteria: ColumnElement[bool]) -> int:
        pass


class BaseRepository(IRepository[T]):
    """Generic SQLModel repository; subclasses add eager loading and custom queries.

    Mutations are only staged on the shared session. Nothing reaches the
    database until the owning unit of work saves changes.

    Models with a ``deleted`` column are soft-deleted: ``delete`` sets the
    flag and every read filters flagged rows unless ``include_deleted`` is
    passed. ``remove`` performs a physical delete.
    """

    def __init__(self, session, model: Type[T], actor: str = DEFAULT_ACTOR):
        """Initialize repository with session and model."""
        self.session = session
        self.model = model
        self.actor = actor

    @property
    def soft_delete(self) -> bool:
        return hasattr(self.model, "deleted")

    def _base_query(self) -> Select:
        """Statement every read starts from; override to add eager loading."""
        return select(self.model)

    def _active(self, statement: Select, include_deleted: bool = False) -> Select:
        if self.soft_delete and not include_deleted:
            statement = statement.where(self.model.deleted == False)  # noqa: E712
        return statement

    def _query(self, *criteria: ColumnElement[bool], include_deleted: bool = False) -> Select:
        statement = self._active(self._base_query(), include_deleted)
        if criteria:
            statement = statement.where(*criteria)
        return statement

    async def _all(self, statement: Select) -> List[T]:
        result = await self.session.exec(statement)
        return list(result.all())

    async def _first(self, statement: Select) -> Optional[T]:
        result = await self.session.exec(statement)
        return result.first()

    async def _any(self, *criteria: ColumnElement[bool], include_deleted: bool = False) -> bool:
        """True if any stored row matches (non-deleted rows only unless include_deleted).

        Pending changes are not flushed first, so a uniqueness check on an
        already modified entity sees the stored state.
        """
        statement = self._active(select(self.model.id), include_deleted).where(*criteria).limit(1)
        with self.session.no_autoflush:
            return await self._first(statement) is not None

    def _stamp(self, entity: T, created: bool = False) -> None:
        now = utcnow()
        if created:
            if hasattr(entity, "created_at"):
                entity.created_at = now
            if hasattr(entity, "created_by") and not entity.created_by:
                entity.created_by = self.actor
        if hasattr(entity, "updated_at"):
            entity.updated_at = now
        if hasattr(entity, "updated_by"):
            entity.updated_by = self.actor

    async def get_by_id(self, id: int, include_deleted: bool = False) -> Optional[T]:
        """Get entity by ID."""
        return await self._first(self._query(self.model.id == id, include_deleted=include_deleted))

    async def get_all(
        self, limit: Optional[int] = None, offset: int = 0, include_deleted: bool = False
    ) -> List[T]:
        """Get all entities (optionally paginated)."""
        statement = self._query(include_deleted=include_deleted).order_by(self.model.id)
        if limit is not None:
            statement = statement.limit(limit)
        if offset:
            statement = statement.offset(offset)
        return await self._all(statement)

    async def find(self, *criteria: ColumnElement[bool], include_deleted: bool = False) -> List[T]:
        """Find entities by SQLAlchemy expressions, e.g. find(Training.duration > 12)."""
        return await self._all(self._query(*criteria, include_deleted=include_deleted))

    def _equality(self, filters: dict) -> List[ColumnElement[bool]]:
        return [
            getattr(self.model, key) == value
            for key, value in filters.items()
            if hasattr(self.model, key)
        ]

    async def find_one(self, **filters: Any) -> Optional[T]:
        """Find one entity by filters (e.g. name='Stipend')."""
        return await self._first(self._query(*self._equality(filters)))

    async def find_all(self, **filters: Any) -> List[T]:
        """Find entities by filters."""
        return await self._all(self._query(*self._equality(filters)))

    async def add(self, entity: T) -> T:
        """Stage entity for insertion."""
        self._stamp(entity, created=True)
        self.session.add(entity)
        return entity

    async def add_range(self, entities: Iterable[T]) -> List[T]:
        staged = []
        for entity in entities:
            staged.append(await self.add(entity))
        return staged

    async def update(self, entity: T) -> T:
        """Stage entity for update (the session tracks attribute changes)."""
        self._stamp(entity)
        self.session.add(entity)
        return entity

    async def delete(self, entity: T) -> None:
        """Soft delete when the model supports it, otherwise physical removal."""
        if not self.soft_delete:
            await self.remove(entity)
            return
        entity.deleted = True
        await self.update(entity)

    async def remove(self, entity: T) -> None:
        """Stage physical removal of the row."""
        await self.session.delete(entity)

    async def exists(self, id: int) -> bool:
        return await self._any(self.model.id == id)

    async def count(self, *criteria: ColumnElement[bool], **filters: Any) -> int:
        """Count non-deleted entities matching criteria and equality filters."""
        statement = self._active(select(func.count(self.model.id)))
        conditions = list(criteria) + self._equality(filters)
        if conditions:
            statement = statement.where(*conditions)
        result = await self.session.exec(statement)
        return result.one()
