from typing import Optional, List
from datetime import datetime
from sqlalchemy import select, update, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tripdesk.core import BaseRepository
from tripdesk.models import Booking
from tripdesk.statuses import BookingStatus, PaymentStatus


class BookingRepository(BaseRepository[Booking]):
    """Booking repository implementation"""
    
    def __init__(self, session: AsyncSession):
        super().__init__(Booking, session)
    
    async def get_with_details(self, booking_id: int) -> Optional[Booking]:
        """Get booking with trip and batch loaded"""
        query = (
            select(Booking)
            .options(
                selectinload(Booking.trip),
                selectinload(Booking.batch),
            )
            .where(Booking.id == booking_id)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_user(self, user_id: int, *, skip: int = 0, limit: int = 100) -> List[Booking]:
        query = (
            select(Booking)
            .options(selectinload(Booking.trip), selectinload(Booking.batch))
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_filtered(
        self,
        *,
        booking_status: Optional[str] = None,
        payment_status: Optional[str] = None,
        trip_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Booking]:
        """Staff booking list"""
        query = select(Booking).options(selectinload(Booking.trip), selectinload(Booking.batch))
        
        if booking_status:
            query = query.where(Booking.booking_status == booking_status)
        if payment_status:
            query = query.where(Booking.payment_status == payment_status)
        if trip_id:
            query = query.where(Booking.trip_id == trip_id)
        
        query = query.order_by(Booking.created_at.desc(), Booking.id.desc()).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_confirmed_for_batches(self, batch_ids: List[int]) -> List[Booking]:
        """Confirmed bookings on the given batches, with batch and trip loaded"""
        if not batch_ids:
            return []
        query = (
            select(Booking)
            .options(selectinload(Booking.trip), selectinload(Booking.batch))
            .where(
                Booking.batch_id.in_(batch_ids),
                Booking.booking_status == BookingStatus.confirmed.value,
            )
            .order_by(Booking.id)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def expire_abandoned(self, older_than: datetime) -> int:
        """Bulk-expire initiated bookings still awaiting payment.

        Only ``initiated``/``pending`` rows match, so running this twice is a no-op
        the second time.
        """
        stmt = (
            update(Booking)
            .where(
                and_(
                    Booking.booking_status == BookingStatus.initiated.value,
                    Booking.payment_status == PaymentStatus.pending.value,
                    Booking.created_at < older_than,
                )
            )
            .values(
                booking_status=BookingStatus.expired.value,
                payment_status=PaymentStatus.expired.value,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0
