from typing import Optional, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tripdesk.core import BaseRepository
from tripdesk.models import Trip


class TripRepository(BaseRepository[Trip]):
    """Trip repository implementation"""
    
    def __init__(self, session: AsyncSession):
        super().__init__(Trip, session)
    
    async def get_with_batches(self, trip_id: int) -> Optional[Trip]:
        """Get trip with all of its batches loaded"""
        query = (
            select(Trip)
            .options(selectinload(Trip.batches))
            .where(Trip.id == trip_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_slug(self, slug: str) -> Optional[Trip]:
        result = await self.session.execute(select(Trip).where(Trip.slug == slug))
        return result.scalar_one_or_none()
    
    async def list_active_with_batches(self, *, skip: int = 0, limit: int = 100) -> List[Trip]:
        """Active (not soft-deactivated) trips with batches for availability"""
        query = (
            select(Trip)
            .options(selectinload(Trip.batches))
            .where(Trip.is_active == True)  # noqa: E712
            .order_by(Trip.id)
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
