from typing import Any, Dict, Generic, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

ModelType = TypeVar("ModelType")


class BaseRepository(Generic[ModelType]):
    """Primary-key access shared by the trip, batch, booking and wallet repositories.

    Repositories flush but never commit; the service or unit of work that owns
    the session decides when a transaction ends.
    """

    def __init__(self, model: type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def get(self, id: Any) -> Optional[ModelType]:
        return await self.session.get(self.model, id)

    async def get_for_update(self, id: Any) -> Optional[ModelType]:
        """Load a fresh copy of the row and hold its lock until the transaction ends"""
        query = (
            select(self.model)
            .where(self.model.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def create(self, *, obj_in: Dict[str, Any]) -> ModelType:
        db_obj = self.model(**obj_in)
        self.session.add(db_obj)
        await self.session.flush()
        return db_obj


class BaseService:
    """Holds the request- or job-scoped session"""

    def __init__(self, session: AsyncSession):
        self.session = session
