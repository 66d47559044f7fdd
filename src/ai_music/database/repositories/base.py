"""
Base Repository
Common CRUD operations for all entities
"""

import time
import uuid
from typing import Any, Dict, Generic, Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.logging import performance_logger
from ..connection import Base

# Type variables for generic repository
ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class RepositoryError(Exception):
    """Base repository error"""
    pass


class NotFoundError(RepositoryError):
    """Entity not found error"""
    pass


class ConflictError(RepositoryError):
    """Data conflict error"""
    pass


class BaseRepository(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """Base repository with common CRUD operations.

    Methods flush but never commit; the public Result-returning methods of
    subclasses own the transaction boundary.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def _execute(self, statement):
        """Execute a statement, logging how long it took"""
        start_time = time.time()
        result = await self.session.execute(statement)
        performance_logger.log_database_query(
            query=str(statement),
            duration_ms=(time.time() - start_time) * 1000,
            rows_affected=result.rowcount if getattr(statement, "is_dml", False) else None
        )
        return result

    def _apply_filters(self, query, filters: Optional[Dict[str, Any]]):
        if not filters:
            return query

        for field, value in filters.items():
            if hasattr(self.model, field):
                column = getattr(self.model, field)
                if isinstance(value, (list, tuple, set)):
                    query = query.where(column.in_(value))
                else:
                    query = query.where(column == value)
        return query

    async def create(self, obj_in: CreateSchemaType, **kwargs) -> ModelType:
        """Create a new entity"""
        obj_data = obj_in.model_dump()
        obj_data.update(kwargs)

        db_obj = self.model(**obj_data)
        self.session.add(db_obj)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(f"Data conflict: {str(e)}")

        await self.session.refresh(db_obj)
        return db_obj

    async def get(self, id: uuid.UUID, *options) -> Optional[ModelType]:
        """Get entity by ID, always reflecting the current row"""
        try:
            result = await self._execute(
                select(self.model)
                .where(self.model.id == id)
                .options(*options)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()
        except Exception as e:
            raise RepositoryError(f"Error getting entity: {str(e)}")

    async def get_or_404(self, id: uuid.UUID, *options) -> ModelType:
        """Get entity by ID or raise NotFoundError"""
        obj = await self.get(id, *options)
        if obj is None:
            raise NotFoundError(f"{self.model.__name__} with id {id} not found")
        return obj

    async def update(self, id: uuid.UUID, obj_in: UpdateSchemaType) -> ModelType:
        """Update entity by ID with the fields explicitly set on ``obj_in``"""
        db_obj = await self.get_or_404(id)

        try:
            for field, value in obj_in.model_dump(exclude_unset=True).items():
                if hasattr(db_obj, field):
                    setattr(db_obj, field, value)

            await self.session.flush()
            return db_obj

        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(f"Data conflict: {str(e)}")
        except Exception as e:
            await self.session.rollback()
            raise RepositoryError(f"Error updating entity: {str(e)}")

    async def delete(self, id: uuid.UUID) -> bool:
        """Delete entity by ID"""
        db_obj = await self.get_or_404(id)

        try:
            await self.session.delete(db_obj)
            await self.session.flush()
            return True

        except Exception as e:
            await self.session.rollback()
            raise RepositoryError(f"Error deleting entity: {str(e)}")

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count entities with optional filters"""
        try:
            query = self._apply_filters(select(func.count(self.model.id)), filters)
            result = await self._execute(query)
            return result.scalar() or 0

        except Exception as e:
            raise RepositoryError(f"Error counting entities: {str(e)}")
