from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core import get_settings
from ..core.base import BaseService
from ..models import Booking
from .whatsapp_service import WhatsAppService, send_logged

logger = logging.getLogger(__name__)

BOOKING_CONFIRMED_TEMPLATE = (
    "✅ Booking Confirmed!\n\n"
    "Hi {name},\n\n"
    "Your advance of ₹{advance:,} for *{trip}* ({batch}) has been verified.\n"
    "Travelers: {travelers}\n"
    "Departure: {start_date}\n"
    "{balance_line}\n\n"
    "📞 Support: {support}\n"
    "– Team {brand}"
)


def format_confirmation(booking: Booking) -> str:
    settings = get_settings()
    balance = booking.balance_due
    balance_line = (
        f"⚠️ Balance due before departure: ₹{balance:,}" if balance > 0 else "You're fully paid. See you soon!"
    )
    return BOOKING_CONFIRMED_TEMPLATE.format(
        name=booking.full_name,
        advance=booking.advance_paid or 0,
        trip=booking.trip.name if booking.trip else f"Trip {booking.trip_id}",
        batch=booking.batch.batch_name if booking.batch else "batch to be assigned",
        travelers=booking.num_travelers,
        start_date=booking.batch.start_date.isoformat() if booking.batch else "TBA",
        balance_line=balance_line,
        support=settings.SUPPORT_PHONE,
        brand=settings.BRAND_NAME,
    )


class NotificationService(BaseService):
    """Customer notifications for booking transitions. WhatsApp only."""

    def __init__(self, session: AsyncSession, sender: Optional[WhatsAppService] = None):
        super().__init__(session)
        self.sender = sender or WhatsAppService()

    async def send_booking_confirmation(self, booking_id: int) -> bool:
        """Send the confirmation message for a freshly verified booking.

        Returns whether a message went out. Never raises for delivery problems:
        the confirmation itself is already committed.
        """
        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .options(selectinload(Booking.trip), selectinload(Booking.batch))
        )
        booking: Booking | None = (await self.session.execute(stmt)).scalar_one_or_none()
        if not booking:
            logger.error("Booking %s not found; cannot send confirmation", booking_id)
            return False
        if not booking.whatsapp_optin:
            logger.info("Booking %s has no WhatsApp opt-in; skipping confirmation", booking_id)
            return False
        if not self.sender.configured:
            logger.info("WhatsApp not configured; skipping confirmation for booking %s", booking_id)
            return False

        return await send_logged(
            self.session,
            self.sender,
            phone=booking.phone,
            body=format_confirmation(booking),
            message_type="booking_confirmation",
            booking_id=booking.id,
            user_id=booking.user_id,
        )
