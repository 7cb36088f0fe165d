from typing import Optional, List
from datetime import date
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tripdesk.core import BaseRepository
from tripdesk.models import Batch
from tripdesk.statuses import BatchStatus


class BatchRepository(BaseRepository[Batch]):
    """Batch repository; the only writer of ``seats_booked``"""
    
    def __init__(self, session: AsyncSession):
        super().__init__(Batch, session)
    
    async def get_by_trip(
        self,
        trip_id: int,
        *,
        statuses: Optional[List[str]] = None,
        from_date: Optional[date] = None,
    ) -> List[Batch]:
        """Get batches for a trip ordered by departure"""
        query = select(Batch).where(Batch.trip_id == trip_id)
        
        if statuses:
            query = query.where(Batch.status.in_(statuses))
        if from_date:
            query = query.where(Batch.start_date >= from_date)
        
        query = query.order_by(Batch.start_date, Batch.id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_by_ids(self, batch_ids: List[int]) -> List[Batch]:
        if not batch_ids:
            return []
        result = await self.session.execute(select(Batch).where(Batch.id.in_(batch_ids)))
        return list(result.scalars().all())

    async def get_starting_on(self, days: List[date], statuses: List[str]) -> List[Batch]:
        result = await self.session.execute(
            select(Batch).where(Batch.start_date.in_(days), Batch.status.in_(statuses))
        )
        return list(result.scalars().all())
    
    async def increment_seats(self, batch_id: int, seats: int) -> bool:
        """Atomically take *seats* if the batch is active and has room.

        Returns False (nothing written) when the increment would overflow the
        batch size or the batch is not active.
        """
        stmt = (
            update(Batch)
            .where(
                Batch.id == batch_id,
                Batch.status == BatchStatus.active.value,
                Batch.seats_booked + seats <= Batch.batch_size,
            )
            .values(seats_booked=Batch.seats_booked + seats)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def release_seats(self, batch_id: int, seats: int) -> bool:
        """Atomically give back *seats*, never going below zero."""
        stmt = (
            update(Batch)
            .where(Batch.id == batch_id, Batch.seats_booked >= seats)
            .values(seats_booked=Batch.seats_booked - seats)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
