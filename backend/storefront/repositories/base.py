"""
Base repository with common data access operations.
Implements the Repository pattern for data access abstraction.
"""
from typing import Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository bound to one session (one unit of work).

    Subclasses should set the `model` class attribute to the SQLAlchemy model.
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, id: str, *, refresh: bool = False) -> ModelType | None:
        """Get a single record by its primary key."""
        return await self.session.get(self.model, id, populate_existing=refresh)

    async def get_for_update(self, id: str) -> ModelType | None:
        """Get a record and hold a row lock until the transaction ends."""
        stmt = (
            select(self.model)
            .where(self.model.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
