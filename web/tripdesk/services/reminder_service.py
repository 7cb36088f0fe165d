"""Trip and balance reminder jobs.

Trip reminders fire on fixed day offsets relative to the batch dates and are
deduplicated per ``(booking, reminder type)`` through ``booking_notifications``.
The marker is written only after a successful send, so a failed delivery is
retried on the next run inside the same window. Balance reminders are limited
to one per booking per calendar day through ``payment_reminders``.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core import BaseService, get_settings
from ..infrastructure.repositories import BatchRepository, BookingRepository
from ..models import Batch, Booking, BookingNotification, PaymentReminder
from ..statuses import BatchStatus, BookingStatus, PaymentStatus, ReminderType
from .whatsapp_service import WhatsAppService, send_logged

logger = logging.getLogger(__name__)

SEVEN_DAY_TEMPLATE = (
    "🏔️ 7 Days to Go!\n\nHi {name},\n\nYour trip *{trip}* departs on {start_date}!\n\n{balance_block}\n\n– Team {brand}"
)
FIVE_DAY_BALANCE_TEMPLATE = (
    "⏰ Payment Reminder\n\nHi {name},\n\nYour remaining ₹{balance:,} for *{trip}* is due.\n\n"
    "Trip departs in 5 days. Please pay before {start_date}.\n\n– Team {brand}"
)
FINAL_24HR_TEMPLATE = (
    "🎒 Tomorrow's the Day!\n\nHi {name},\n\nYour trip *{trip}* starts tomorrow!\n\n"
    "📍 Reporting time and pickup details will be shared by your coordinator.\n📞 Support: {support}\n\n"
    "{balance_block}\n\nHappy travels!\n– Team {brand}"
)
REVIEW_TEMPLATE = (
    "⭐ How was your trip?\n\nHi {name},\n\nWe hope you enjoyed *{trip}*! 🌄\n\n"
    "We'd love to hear about your experience. Leave a review on your dashboard and help fellow travelers!\n\n"
    "– Team {brand}"
)
BALANCE_REMINDER_TEMPLATE = (
    "⏰ Payment Reminder – {brand}\n\nHi {name},\n\n"
    "Your remaining ₹{balance:,} for *{trip}* is pending. Please complete payment before *{start_date}*.\n\n"
    "📋 Booking ID: {booking_id}\n💳 Pending Amount: ₹{balance:,}\n\n"
    "Complete your payment to secure your seat! 🌊\n\n– Team {brand}"
)

BALANCE_REMINDER_DAYS = (7, 3)

_BALANCE_PAYMENT_STATUSES = (PaymentStatus.advance_verified.value, PaymentStatus.balance_pending.value)


def _has_balance(booking: Booking) -> bool:
    return booking.payment_status != PaymentStatus.fully_paid.value and booking.balance_due > 0


def due_reminders(booking: Booking, batch: Batch, today: date) -> List[ReminderType]:
    """Reminder types whose window is today for *booking*."""
    days_until = (batch.start_date - today).days
    days_since_end = (today - batch.end_date).days
    due: List[ReminderType] = []
    if days_until == 7:
        due.append(ReminderType.seven_day)
    if days_until == 5 and _has_balance(booking):
        due.append(ReminderType.five_day_balance)
    if days_until == 1:
        due.append(ReminderType.final_24hr)
    if days_since_end == 2:
        due.append(ReminderType.review_2day)
    return due


def render_trip_reminder(kind: ReminderType, booking: Booking, batch: Batch) -> str:
    settings = get_settings()
    balance = booking.balance_due
    trip_name = booking.trip.name if booking.trip else str(booking.trip_id)
    common = {
        "name": booking.full_name,
        "trip": trip_name,
        "start_date": batch.start_date.isoformat(),
        "brand": settings.BRAND_NAME,
        "support": settings.SUPPORT_PHONE,
        "balance": balance,
    }
    if kind is ReminderType.seven_day:
        block = (
            f"⚠️ Balance due: ₹{balance:,}\nPlease complete payment soon." if _has_balance(booking)
            else "✅ You're all set!"
        )
        return SEVEN_DAY_TEMPLATE.format(balance_block=block, **common)
    if kind is ReminderType.five_day_balance:
        return FIVE_DAY_BALANCE_TEMPLATE.format(**common)
    if kind is ReminderType.final_24hr:
        block = f"⚠️ Please clear your remaining ₹{balance:,} before departure." if _has_balance(booking) else ""
        return FINAL_24HR_TEMPLATE.format(balance_block=block, **common)
    return REVIEW_TEMPLATE.format(**common)


class ReminderService(BaseService):
    """Composes and sends reminder messages for confirmed bookings."""

    def __init__(self, session: AsyncSession, sender: Optional[WhatsAppService] = None):
        super().__init__(session)
        self.sender = sender or WhatsAppService()
        self.bookings = BookingRepository(session)
        self.batches = BatchRepository(session)

    async def _sent_markers(self, booking_ids: List[int]) -> set[Tuple[int, str]]:
        if not booking_ids:
            return set()
        rows = await self.session.execute(
            select(BookingNotification.booking_id, BookingNotification.type)
            .where(BookingNotification.booking_id.in_(booking_ids))
        )
        return {(b_id, kind) for b_id, kind in rows}

    async def send_trip_reminders(self, today: Optional[date] = None) -> Dict[str, int]:
        today = today or date.today()
        results: Counter = Counter({
            ReminderType.seven_day.value: 0,
            ReminderType.five_day_balance.value: 0,
            ReminderType.final_24hr.value: 0,
            ReminderType.review_2day.value: 0,
            "skipped": 0,
            "errors": 0,
        })

        # Windows: start in 7/5/1 days, or ended 2 days ago
        start_days = [today + timedelta(days=n) for n in (7, 5, 1)]
        ended = today - timedelta(days=2)
        batches = await self.batches.get_starting_on(start_days, [s.value for s in BatchStatus])
        batches += list((await self.session.scalars(select(Batch).where(Batch.end_date == ended))).all())
        batch_map = {b.id: b for b in batches}

        bookings = await self.bookings.get_confirmed_for_batches(list(batch_map))
        sent = await self._sent_markers([b.id for b in bookings])

        for booking in bookings:
            batch = batch_map[booking.batch_id]
            for kind in due_reminders(booking, batch, today):
                if (booking.id, kind.value) in sent:
                    results["skipped"] += 1
                    continue
                if not booking.whatsapp_optin:
                    results["skipped"] += 1
                    continue

                delivered = await send_logged(
                    self.session,
                    self.sender,
                    phone=booking.phone,
                    body=render_trip_reminder(kind, booking, batch),
                    message_type=kind.value,
                    booking_id=booking.id,
                    user_id=booking.user_id,
                )
                if not delivered:
                    results["errors"] += 1
                    continue

                self.session.add(BookingNotification(
                    booking_id=booking.id,
                    type=kind.value,
                    channel="whatsapp",
                    status="sent",
                    meta={"trip_id": booking.trip_id, "batch": batch.batch_name, "balance_due": booking.balance_due},
                ))
                await self.session.flush()
                sent.add((booking.id, kind.value))
                results[kind.value] += 1

        await self.session.commit()
        logger.info("Trip reminders run for %s: %s", today.isoformat(), dict(results))
        return dict(results)

    async def send_balance_reminders(self, today: Optional[date] = None) -> Dict[str, int]:
        today = today or date.today()
        results = {"sent": 0, "skipped": 0, "errors": 0}

        target_days = [today + timedelta(days=n) for n in BALANCE_REMINDER_DAYS]
        batches = await self.batches.get_starting_on(
            target_days, [BatchStatus.active.value, BatchStatus.upcoming.value]
        )
        batch_map = {b.id: b for b in batches}
        if not batch_map:
            logger.info("Balance reminders: no batches starting in %s days", BALANCE_REMINDER_DAYS)
            return results

        bookings = [
            b for b in await self.bookings.get_confirmed_for_batches(list(batch_map))
            if b.whatsapp_optin and b.payment_status in _BALANCE_PAYMENT_STATUSES
        ]

        day_start = datetime.combine(today, datetime.min.time())
        already = set()
        if bookings:
            rows = await self.session.scalars(
                select(PaymentReminder.booking_id).where(
                    PaymentReminder.booking_id.in_([b.id for b in bookings]),
                    PaymentReminder.channel == "whatsapp",
                    PaymentReminder.sent_at >= day_start,
                )
            )
            already = set(rows.all())

        for booking in bookings:
            if booking.balance_due <= 0 or booking.id in already:
                results["skipped"] += 1
                continue

            batch = batch_map[booking.batch_id]
            message = BALANCE_REMINDER_TEMPLATE.format(
                brand=get_settings().BRAND_NAME,
                name=booking.full_name,
                balance=booking.balance_due,
                trip=booking.trip.name if booking.trip else booking.trip_id,
                start_date=batch.start_date.strftime("%d %B %Y"),
                booking_id=booking.id,
            )
            delivered = await send_logged(
                self.session,
                self.sender,
                phone=booking.phone,
                body=message,
                message_type="balance_reminder",
                booking_id=booking.id,
                user_id=booking.user_id,
            )
            if not delivered:
                results["errors"] += 1
                continue

            self.session.add(PaymentReminder(booking_id=booking.id, channel="whatsapp", message=message))
            await self.session.flush()
            already.add(booking.id)
            results["sent"] += 1

        await self.session.commit()
        logger.info("Balance reminders run for %s: %s", today.isoformat(), results)
        return results
