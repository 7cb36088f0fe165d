from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core import BaseService, get_settings
from ..core.unit_of_work import UnitOfWork
from .wallet_service import WalletService

logger = logging.getLogger(__name__)


class MaintenanceService(BaseService):
    """Expiry jobs. Each run commits its own transaction."""

    def __init__(self, session: AsyncSession):
        super().__init__(session)
        self.settings = get_settings()

    async def expire_abandoned_bookings(self, now: Optional[datetime] = None) -> int:
        """Expire unpaid ``initiated`` bookings older than the grace window.

        No seat bookkeeping is needed: initiated bookings never took seats.
        """
        now = now or datetime.utcnow()
        cutoff = now - timedelta(hours=self.settings.ABANDONED_BOOKING_HOURS)
        async with UnitOfWork(self.session) as uow:
            expired = await uow.bookings.expire_abandoned(cutoff)
            await uow.commit()
        logger.info("Abandoned-booking expiry: %s bookings expired (cutoff %s)", expired, cutoff.isoformat())
        return expired

    async def expire_wallet_credits(self, now: Optional[datetime] = None) -> int:
        async with UnitOfWork(self.session) as uow:
            expired = await WalletService(self.session).expire_wallet_credits(now)
            await uow.commit()
        logger.info("Wallet-credit expiry: %s credit lots expired", expired)
        return expired
