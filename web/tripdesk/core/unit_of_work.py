from __future__ import annotations
from sqlalchemy.ext.asyncio import AsyncSession

from tripdesk.infrastructure.repositories import (
    TripRepository,
    BatchRepository,
    BookingRepository,
    WalletRepository,
)


class UnitOfWork:
    """Unit of work for managing repository instances and transactions."""
    
    def __init__(self, session: AsyncSession):
        self.session = session
        self.trips = TripRepository(session)
        self.batches = BatchRepository(session)
        self.bookings = BookingRepository(session)
        self.wallets = WalletRepository(session)
    
    async def __aenter__(self) -> UnitOfWork:
        return self
    
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            await self.rollback()
    
    async def commit(self):
        await self.session.commit()
    
    async def rollback(self):
        await self.session.rollback()
