from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from docintel.utils.logging import get_logger

ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Common CRUD operations over one SQLAlchemy model.

    Write operations commit immediately; every SQLAlchemy failure is logged
    with its traceback and re-raised to the caller.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session
            model: The SQLAlchemy model class this repository manages
        """
        self.session = session
        self.model = model
        self.logger = LOGGER

    def _filtered(self, query, filters: Optional[Dict[str, Any]]):
        for field, value in (filters or {}).items():
            column = getattr(self.model, field, None)
            if column is None:
                continue
            if isinstance(value, (list, tuple, set)):
                query = query.where(column.in_(list(value)))
            else:
                query = query.where(column == value)
        return query

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        """Get a record by primary key, or None."""
        try:
            return await self.session.get(self.model, id)
        except SQLAlchemyError as e:
            self.logger.error(f"Error retrieving {self.model.__name__} {id}: {e}", exc_info=True)
            raise

    async def get_all(
        self,
        skip: int = 0,
        limit: Optional[int] = None,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Any = None,
    ) -> List[ModelType]:
        """Get records with optional filtering, ordering and pagination.

        Args:
            skip: Number of records to skip
            limit: Maximum number of records to return (None for all)
            filters: field_name -> value, or field_name -> collection for IN
            order_by: Column expression(s) to order by

        Returns:
            List of records
        """
        try:
            query = self._filtered(select(self.model), filters)
            if order_by is not None:
                query = query.order_by(*(order_by if isinstance(order_by, (list, tuple)) else [order_by]))
            if skip:
                query = query.offset(skip)
            if limit is not None:
                query = query.limit(limit)
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error retrieving {self.model.__name__} list: {e}", exc_info=True)
            raise

    async def create(self, **kwargs) -> ModelType:
        """Insert and commit a new record."""
        try:
            instance = self.model(**kwargs)
            self.session.add(instance)
            await self.session.commit()
            await self.session.refresh(instance)
            return instance
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(f"Error creating {self.model.__name__}: {e}", exc_info=True)
            raise

    async def update(self, id: int, **kwargs) -> Optional[ModelType]:
        """Update fields of an existing record, or return None if missing."""
        try:
            instance = await self.get_by_id(id)
            if instance is None:
                return None
            for key, value in kwargs.items():
                if hasattr(instance, key):
                    setattr(instance, key, value)
            await self.session.commit()
            await self.session.refresh(instance)
            return instance
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(f"Error updating {self.model.__name__} {id}: {e}", exc_info=True)
            raise

    async def delete(self, id: int) -> bool:
        """Delete a record by primary key. Returns False if it did not exist."""
        try:
            instance = await self.get_by_id(id)
            if instance is None:
                return False
            await self.session.delete(instance)
            await self.session.commit()
            return True
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(f"Error deleting {self.model.__name__} {id}: {e}", exc_info=True)
            raise

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count records matching filters."""
        try:
            query = self._filtered(select(func.count()).select_from(self.model), filters)
            result = await self.session.execute(query)
            return result.scalar_one()
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting {self.model.__name__}: {e}", exc_info=True)
            raise
