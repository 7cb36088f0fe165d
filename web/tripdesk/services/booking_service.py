"""Booking lifecycle: checkout, payment proof, verification, settlement, cancellation.

Seats are only taken when staff verify the advance; an ``initiated`` booking
holds nothing, which is why abandoned bookings can simply be expired.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..availability import is_batch_purchasable, is_bookable
from ..core import (
    BaseService,
    BusinessLogicError,
    ConflictError,
    NotFoundError,
    ValidationError,
    get_settings,
)
from ..core.unit_of_work import UnitOfWork
from ..models import Booking, Trip, WhatsAppConsent
from ..pricing import calculate_dynamic_price
from ..statuses import BookingStatus, PaymentStatus
from .audit_service import AuditService
from .notification_service import NotificationService
from .wallet_service import WalletService
from .whatsapp_service import WhatsAppService

logger = logging.getLogger(__name__)


def advance_due_for(booking: Booking, trip: Optional[Trip]) -> int:
    """Advance the customer must pay to get the booking verified."""
    per_traveler = (trip.advance_amount if trip and trip.advance_amount else None) \
        or get_settings().DEFAULT_ADVANCE_PER_TRAVELER
    return min(per_traveler * booking.num_travelers, booking.total_amount)


class BookingService(BaseService):
    def __init__(self, session: AsyncSession, sender: Optional[WhatsAppService] = None):
        super().__init__(session)
        self.sender = sender

    # ------------------------------------------------------------------
    #  Customer side
    # ------------------------------------------------------------------
    async def create_booking(self, user_id: int, data: Dict[str, Any]) -> Booking:
        """Create an ``initiated`` booking at the current dynamic price.

        Nothing is persisted when the trip is not bookable, the batch cannot
        seat the party, or the requested wallet credit cannot be applied.
        """
        travelers = data.get("num_travelers") or 0
        if travelers < 1:
            raise ValidationError("At least one traveler is required", field="num_travelers")

        async with UnitOfWork(self.session) as uow:
            trip = await uow.trips.get_with_batches(data["trip_id"])
            if not trip or not trip.is_active:
                raise NotFoundError("Trip", data["trip_id"])

            if not is_bookable(trip.batches, trip.booking_live):
                raise BusinessLogicError("This trip is not currently open for booking", rule="trip_not_bookable")

            batch = next((b for b in trip.batches if b.id == data.get("batch_id")), None)
            if batch is None:
                raise NotFoundError("Batch", data.get("batch_id"))
            if not is_batch_purchasable(batch, travelers):
                raise BusinessLogicError(
                    f"Only {batch.available_seats} seats left in this batch",
                    rule="batch_unavailable",
                )

            pickup = (data.get("pickup_location") or "").strip().lower() or None
            base = batch.price_override if batch.price_override is not None else trip.base_price_for(pickup)
            price = calculate_dynamic_price(base, batch.batch_size, batch.available_seats, batch.start_date)
            subtotal = price.effective_price * travelers

            referral_code = (data.get("referral_code") or "").strip().upper() or None

            booking = await uow.bookings.create(obj_in={
                "user_id": user_id,
                "trip_id": trip.id,
                "batch_id": batch.id,
                "full_name": data["full_name"],
                "email": data["email"],
                "phone": data["phone"],
                "pickup_location": pickup,
                "num_travelers": travelers,
                "unit_price": price.effective_price,
                "subtotal_amount": subtotal,
                "wallet_discount": 0,
                "total_amount": subtotal,
                "advance_paid": 0,
                "booking_status": BookingStatus.initiated.value,
                "payment_status": PaymentStatus.pending.value,
                "referral_code_used": referral_code,
                "whatsapp_optin": bool(data.get("whatsapp_optin")),
            })

            if booking.whatsapp_optin:
                await self._record_consent(user_id, booking.phone)

            wallet_amount = data.get("wallet_amount") or 0
            if wallet_amount:
                applied = await WalletService(self.session).apply_wallet_credit(user_id, booking.id, wallet_amount)
                if not applied:
                    raise BusinessLogicError(
                        "Wallet credit could not be applied: insufficient or frozen balance",
                        rule="insufficient_wallet_balance",
                    )

            await uow.commit()

        logger.info(
            "Booking %s created: trip=%s batch=%s travelers=%s total=%s",
            booking.id, booking.trip_id, booking.batch_id, travelers, booking.total_amount,
        )
        return booking

    async def _record_consent(self, user_id: int, phone: str) -> None:
        existing = await self.session.scalar(
            select(WhatsAppConsent).where(WhatsAppConsent.user_id == user_id, WhatsAppConsent.phone == phone)
        )
        if existing is None:
            self.session.add(WhatsAppConsent(user_id=user_id, phone=phone, opted_in=True, source="booking"))
        elif not existing.opted_in:
            existing.opted_in = True
            existing.opted_in_at = datetime.utcnow()
            existing.opted_out_at = None
        await self.session.flush()

    async def submit_payment_proof(
        self,
        booking_id: int,
        user_id: int,
        amount: int,
        screenshot_url: Optional[str] = None,
    ) -> Booking:
        """Customer claims the advance was paid: ``initiated -> pending``."""
        async with UnitOfWork(self.session) as uow:
            booking = await uow.bookings.get_for_update(booking_id)
            if not booking or booking.user_id != user_id:
                raise NotFoundError("Booking", booking_id)
            if booking.booking_status != BookingStatus.initiated.value:
                raise BusinessLogicError(
                    f"Cannot submit payment for a booking that is {booking.booking_status}",
                    rule="invalid_status_transition",
                )
            if amount is None or amount <= 0 or amount > booking.total_amount:
                raise ValidationError("Advance amount must be between 1 and the booking total", field="amount")

            booking.advance_paid = amount
            booking.advance_screenshot_url = screenshot_url
            booking.booking_status = BookingStatus.pending.value
            await self.session.flush()
            await uow.commit()
        return booking

    async def get_user_booking(self, booking_id: int, user_id: int) -> Booking:
        booking = await self.get_booking(booking_id)
        if booking.user_id != user_id:
            raise NotFoundError("Booking", booking_id)
        return booking

    async def list_user_bookings(self, user_id: int) -> List[Booking]:
        async with UnitOfWork(self.session) as uow:
            return await uow.bookings.get_by_user(user_id)

    # ------------------------------------------------------------------
    #  Staff side
    # ------------------------------------------------------------------
    async def get_booking(self, booking_id: int) -> Booking:
        async with UnitOfWork(self.session) as uow:
            booking = await uow.bookings.get_with_details(booking_id)
        if not booking:
            raise NotFoundError("Booking", booking_id)
        return booking

    async def list_bookings(self, **filters) -> List[Booking]:
        async with UnitOfWork(self.session) as uow:
            return await uow.bookings.list_filtered(**filters)

    async def verify_advance_payment(
        self,
        booking_id: int,
        staff_id: int,
        advance_amount: Optional[int] = None,
    ) -> Booking:
        """Confirm a booking after staff checked the advance payment.

        Seat increment, status change and referral credit commit together.
        Re-verifying a confirmed booking changes nothing.
        """
        async with UnitOfWork(self.session) as uow:
            booking = await uow.bookings.get_for_update(booking_id)
            if not booking:
                raise NotFoundError("Booking", booking_id)

            if booking.booking_status == BookingStatus.confirmed.value:
                logger.info("Booking %s already confirmed; verification is a no-op", booking_id)
                return booking

            if booking.booking_status not in (BookingStatus.initiated.value, BookingStatus.pending.value):
                raise BusinessLogicError(
                    f"Cannot verify a booking that is {booking.booking_status}",
                    rule="invalid_status_transition",
                )

            if advance_amount is not None:
                if advance_amount <= 0 or advance_amount > booking.total_amount:
                    raise ValidationError(
                        "Advance amount must be between 1 and the booking total",
                        field="advance_amount",
                    )
                booking.advance_paid = advance_amount
            if not booking.advance_paid:
                raise ValidationError("No advance amount recorded for this booking", field="advance_amount")
            if booking.batch_id is None:
                raise BusinessLogicError("Booking has no batch assigned", rule="no_batch")

            if not await uow.batches.increment_seats(booking.batch_id, booking.num_travelers):
                raise ConflictError(
                    "Not enough seats left in this batch to confirm the booking",
                    rule="batch_full",
                )

            now = datetime.utcnow()
            booking.booking_status = BookingStatus.confirmed.value
            booking.payment_status = (
                PaymentStatus.fully_paid.value if booking.balance_due == 0 else PaymentStatus.advance_verified.value
            )
            booking.verified_by = staff_id
            booking.verified_at = now
            await self.session.flush()

            referral_credited = False
            if booking.referral_code_used and booking.user_id:
                referral_credited = await WalletService(self.session).credit_referral(
                    booking.referral_code_used, booking.user_id, booking.id
                )

            await AuditService(self.session).record(
                user_id=staff_id,
                action_type="booking_verified",
                entity_type="booking",
                entity_id=booking.id,
                meta={
                    "advance_paid": booking.advance_paid,
                    "payment_status": booking.payment_status,
                    "referral_credited": referral_credited,
                },
            )
            await uow.commit()

        logger.info("Booking %s confirmed by user %s", booking.id, staff_id)
        await self._notify_confirmation(booking)
        return booking

    async def _notify_confirmation(self, booking: Booking) -> None:
        try:
            await NotificationService(self.session, self.sender).send_booking_confirmation(booking.id)
            await self.session.commit()
        except Exception:
            logger.exception("Confirmation notification for booking %s failed", booking.id)
            await self.session.rollback()
            # The confirmation itself is committed; reload what the rollback expired
            await self.session.refresh(booking)

    async def record_balance_payment(self, booking_id: int, amount: int, staff_id: int) -> Booking:
        """Add a balance payment to a confirmed booking."""
        async with UnitOfWork(self.session) as uow:
            booking = await uow.bookings.get_for_update(booking_id)
            if not booking:
                raise NotFoundError("Booking", booking_id)
            if booking.booking_status != BookingStatus.confirmed.value:
                raise BusinessLogicError(
                    "Balance payments can only be recorded for confirmed bookings",
                    rule="invalid_status_transition",
                )
            if amount is None or amount <= 0:
                raise ValidationError("Amount must be positive", field="amount")
            if amount > booking.balance_due:
                raise ValidationError(
                    f"Amount exceeds the outstanding balance of {booking.balance_due}",
                    field="amount",
                )

            booking.advance_paid += amount
            booking.payment_status = (
                PaymentStatus.fully_paid.value if booking.balance_due == 0 else PaymentStatus.balance_pending.value
            )
            await self.session.flush()

            await AuditService(self.session).record(
                user_id=staff_id,
                action_type="balance_payment_recorded",
                entity_type="booking",
                entity_id=booking.id,
                meta={"amount": amount, "payment_status": booking.payment_status},
            )
            await uow.commit()
        return booking

    async def cancel_booking(self, booking_id: int, staff_id: int, reason: Optional[str] = None) -> Booking:
        """Cancel a pending or confirmed booking, returning confirmed seats to the batch."""
        async with UnitOfWork(self.session) as uow:
            booking = await uow.bookings.get_for_update(booking_id)
            if not booking:
                raise NotFoundError("Booking", booking_id)
            if booking.booking_status not in (BookingStatus.pending.value, BookingStatus.confirmed.value):
                raise BusinessLogicError(
                    f"Cannot cancel a booking that is {booking.booking_status}",
                    rule="invalid_status_transition",
                )

            seats_released = 0
            if booking.booking_status == BookingStatus.confirmed.value and booking.batch_id:
                if await uow.batches.release_seats(booking.batch_id, booking.num_travelers):
                    seats_released = booking.num_travelers
                else:
                    logger.warning("Batch %s had fewer booked seats than booking %s holds", booking.batch_id, booking.id)

            booking.booking_status = BookingStatus.cancelled.value
            booking.cancellation_reason = reason
            booking.cancelled_at = datetime.utcnow()
            await self.session.flush()

            await AuditService(self.session).record(
                user_id=staff_id,
                action_type="booking_cancelled",
                entity_type="booking",
                entity_id=booking.id,
                meta={"reason": reason, "seats_released": seats_released},
            )
            await uow.commit()
        return booking
