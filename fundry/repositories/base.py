"""
Generic async repository (Data Access Layer).

Concrete repositories inherit from ``BaseRepository[T]`` and add
entity-specific queries.  Every call goes through the database circuit
breaker so an outage fails fast instead of exhausting the pool.

**IntegrityError** is intentionally not caught here: each service maps it
to its own domain error (duplicate submission, vanished campaign, ...).
**OperationalError** rolls the session back before re-raising so a dirty
transaction never leaks into the rest of the request.
"""

import logging
from typing import Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlmodel import SQLModel

from fundry.core.resilience import db_circuit_breaker

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic CRUD repository for SQLModel entities.

    Parameters
    ----------
    model : Type[ModelType]
        The SQLModel class this repository manages.
    db : AsyncSession
        An active async database session (injected per-request).
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    async def _execute_with_circuit_breaker(
        self, func: Any, *args: Any, **kwargs: Any
    ) -> Any:
        return await db_circuit_breaker.call(func, *args, **kwargs)

    async def _commit(self, action: str) -> None:
        try:
            await self.db.commit()
        except OperationalError:
            await self.db.rollback()
            logger.error("OperationalError during %s for %s", action, self.model.__name__)
            raise

    async def get(self, id: Any) -> Optional[ModelType]:
        """Fetch a single entity by primary key.  Returns ``None`` if not found."""

        async def _get() -> Optional[ModelType]:
            return await self.db.get(self.model, id)

        return await self._execute_with_circuit_breaker(_get)

    async def get_all(self, skip: int = 0, limit: int = 100) -> List[ModelType]:
        """Paginated list ordered by primary key (stable across pages)."""

        async def _get_all() -> List[ModelType]:
            pk_columns = self.model.__table__.primary_key.columns
            stmt = select(self.model).order_by(*pk_columns).offset(skip).limit(limit)
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_with_circuit_breaker(_get_all)

    async def create(self, obj_in: ModelType) -> ModelType:
        """Insert a new entity and return the refreshed instance."""

        async def _create() -> ModelType:
            self.db.add(obj_in)
            await self._commit("create")
            await self.db.refresh(obj_in)
            return obj_in

        return await self._execute_with_circuit_breaker(_create)

    async def create_together(self, entities: Sequence[SQLModel]) -> None:
        """
        Insert several related rows in one transaction (all or nothing).

        Used where one row must never exist without the others, e.g. an
        investment and its draft SAFE agreement.
        """

        async def _create_together() -> None:
            self.db.add_all(list(entities))
            await self._commit("create_together")
            for entity in entities:
                await self.db.refresh(entity)

        await self._execute_with_circuit_breaker(_create_together)

    async def update(self, entity: ModelType) -> ModelType:
        """
        Persist changes to an already-tracked entity.

        The caller mutates the entity's attributes first; we merge, commit
        and refresh so the returned object reflects DB-side values.
        """

        async def _update() -> ModelType:
            merged = await self.db.merge(entity)
            await self._commit("update")
            await self.db.refresh(merged)
            return merged

        return await self._execute_with_circuit_breaker(_update)

    async def update_together(self, entities: Sequence[SQLModel]) -> None:
        """Persist changes to several tracked entities in one transaction."""

        async def _update_together() -> None:
            for entity in entities:
                await self.db.merge(entity)
            await self._commit("update_together")

        await self._execute_with_circuit_breaker(_update_together)
