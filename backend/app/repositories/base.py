"""Base repository class for data access patterns."""

from abc import ABC
from datetime import datetime, timezone
from typing import Generic, List, Optional, Tuple, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from app.models.base import BaseModel

ModelType = TypeVar("ModelType", bound=BaseModel)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseRepository(ABC, Generic[ModelType]):
    """Base repository providing common CRUD operations."""

    def __init__(self, db: AsyncSession, model: type[ModelType]):
        self.db = db
        self.model = model

    @property
    def soft_deletable(self) -> bool:
        return hasattr(self.model, "deleted_at")

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        """Get a single record by ID."""
        result = await self.db.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def get_active(self, id: int) -> Optional[ModelType]:
        """Get a record by ID unless it has been soft-deleted."""
        query = select(self.model).where(self.model.id == id)
        if self.soft_deletable:
            query = query.where(self.model.deleted_at.is_(None))
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def paginate(self, query: Select, page: int, page_size: int) -> Tuple[List[ModelType], int]:
        """Run a filtered select as one page plus the total match count."""
        total_result = await self.db.execute(
            select(func.count()).select_from(query.order_by(None).subquery())
        )
        total = total_result.scalar_one()
        result = await self.db.execute(query.offset((page - 1) * page_size).limit(page_size))
        return list(result.scalars().unique().all()), total

    async def create(self, **kwargs) -> ModelType:
        """Create a new record."""
        instance = self.model(**kwargs)
        self.db.add(instance)
        await self.db.flush()
        await self.db.refresh(instance)
        return instance

    async def update(self, id: int, **kwargs) -> Optional[ModelType]:
        """Update an existing record."""
        instance = await self.get_by_id(id)
        if not instance:
            return None

        for field, value in kwargs.items():
            if hasattr(instance, field):
                setattr(instance, field, value)

        await self.db.flush()
        await self.db.refresh(instance)
        return instance

    async def soft_delete(self, id: int, **extra) -> Optional[ModelType]:
        """Mark a record as deleted, optionally setting extra fields."""
        return await self.update(id, deleted_at=utcnow(), **extra)

    async def delete(self, id: int) -> bool:
        """Delete a record by ID."""
        instance = await self.get_by_id(id)
        if not instance:
            return False

        await self.db.delete(instance)
        await self.db.flush()
        return True
