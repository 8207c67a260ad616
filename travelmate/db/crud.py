"""
Generic CRUD operations shared by every table
"""

import logging
from typing import Any, Dict, Generic, List, Optional, Sequence, Set, Type, TypeVar
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)


class EntityStore(Generic[ModelT]):
    """find / find_by_id / create / update_by_id / delete_by_id / delete_many over one table

    Writes are flushed, not committed; the calling service owns the transaction.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelT]):
        self.session = session
        self.model = model

    @property
    def name(self) -> str:
        return self.model.__name__

    @property
    def required_columns(self) -> Set[str]:
        """Columns declared NOT NULL"""
        return {column.name for column in self.model.__table__.columns if not column.nullable}

    def nulled_required(self, patch: Dict[str, Any]) -> List[str]:
        """Fields of a patch that would write NULL into a NOT NULL column"""
        required = self.required_columns
        return sorted(field for field, value in patch.items() if value is None and field in required)

    async def find(
        self,
        *criteria,
        order_by: Optional[Sequence[Any]] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[ModelT]:
        query = select(self.model).where(*criteria)
        if order_by is not None:
            query = query.order_by(*order_by)
        if skip:
            query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def find_one(self, *criteria) -> Optional[ModelT]:
        result = await self.session.execute(select(self.model).where(*criteria).limit(1))
        return result.scalars().first()

    async def find_by_id(self, entity_id: UUID) -> Optional[ModelT]:
        return await self.session.get(self.model, entity_id)

    async def count(self, *criteria) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(self.model).where(*criteria)
        )
        return result.scalar_one()

    async def create(self, entity: ModelT) -> ModelT:
        self.session.add(entity)
        await self.session.flush()
        logger.debug(f"Created {self.name} {getattr(entity, 'id', None)}")
        return entity

    async def update_by_id(self, entity_id: UUID, patch: Dict[str, Any]) -> Optional[ModelT]:
        """Apply a partial update; returns None when the row is missing"""
        entity = await self.find_by_id(entity_id)
        if entity is None:
            return None
        for field, value in patch.items():
            if not hasattr(entity, field):
                raise AttributeError(f"{self.name} has no field {field!r}")
            setattr(entity, field, value)
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def delete_by_id(self, entity_id: UUID) -> bool:
        entity = await self.find_by_id(entity_id)
        if entity is None:
            return False
        await self.session.delete(entity)
        await self.session.flush()
        logger.debug(f"Deleted {self.name} {entity_id}")
        return True

    async def delete_many(self, *criteria) -> int:
        if not criteria:
            raise ValueError("delete_many requires at least one filter")
        result = await self.session.execute(
            delete(self.model).where(*criteria).execution_options(synchronize_session="fetch")
        )
        logger.debug(f"Deleted {result.rowcount} {self.name} rows")
        return result.rowcount or 0
