from abc import ABC
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.exceptions import DatabaseOperationError
from src.infrastructure.persistence.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(ABC, Generic[ModelType]):
    """
    Base repository implementing common CRUD operations (LSP).

    Each write is its own unit: with ``autocommit`` (the default) a
    successful write is committed immediately and a failed one is rolled
    back, so one failing row never takes earlier writes down with it.
    Driver errors surface as ``DatabaseOperationError``.
    """

    def __init__(self, db: AsyncSession, model: type[ModelType], *, autocommit: bool = True):
        self.db = db
        self.model = model
        self.autocommit = autocommit

    async def get_by_id(self, id: str) -> ModelType | None:
        """Get a single record by ID"""
        model: Any = self.model
        result = await self._execute(
            "get_by_id",
            select(self.model).where(model.id == id).execution_options(populate_existing=True),
        )
        return result.scalar_one_or_none()

    async def create(self, obj: ModelType) -> ModelType:
        """Create a new record"""
        try:
            self.db.add(obj)
            await self.db.flush()
            await self._commit()
            await self.db.refresh(obj)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseOperationError(f"create {self.model.__name__}", str(e)) from e
        return obj

    async def _execute(self, operation: str, statement):
        """Run a read statement, translating driver errors"""
        try:
            return await self.db.execute(statement)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseOperationError(operation, str(e)) from e

    async def _write(self, operation: str, statement):
        """Run a write statement as its own unit of work"""
        try:
            result = await self.db.execute(statement)
            await self._commit()
            return result
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseOperationError(operation, str(e)) from e

    async def _commit(self) -> None:
        if self.autocommit:
            await self.db.commit()
        else:
            await self.db.flush()
