from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from conftest import STAFF_ID
from tripdesk.core import BusinessLogicError, ConflictError, NotFoundError, ValidationError
from tripdesk.models import AuditLog, Booking, ReferralEarning, WhatsAppConsent, WhatsAppMessageLog
from tripdesk.services import BookingService, CatalogService, WalletService
from tripdesk.statuses import BookingStatus, PaymentStatus


def checkout(trip, batch, **kw) -> dict:
    data = {
        "trip_id": trip.id,
        "batch_id": batch.id,
        "full_name": "Asha Traveller",
        "email": "asha@example.com",
        "phone": "+919876543210",
        "num_travelers": 2,
        "whatsapp_optin": True,
    }
    data.update(kw)
    return data


async def count(session, model) -> int:
    return await session.scalar(select(func.count()).select_from(model))


# ---------- create_booking ----------
async def test_create_booking_locks_dynamic_price(session, factory):
    trip = await factory.trip(price_default=10000)
    batch = await factory.batch(trip, size=10, booked=8)

    booking = await BookingService(session).create_booking(1, checkout(trip, batch))

    # 80% full: +8%
    assert booking.unit_price == 10800
    assert booking.subtotal_amount == 21600
    assert booking.total_amount == 21600
    assert booking.booking_status == BookingStatus.initiated.value
    assert booking.payment_status == PaymentStatus.pending.value
    assert await count(session, WhatsAppConsent) == 1


async def test_create_booking_uses_pickup_price(session, factory):
    trip = await factory.trip(price_default=10000, price_from_pune=9000)
    batch = await factory.batch(trip)

    booking = await BookingService(session).create_booking(1, checkout(trip, batch, pickup_location=" Pune "))

    assert booking.pickup_location == "pune"
    assert booking.unit_price == 9000


async def test_create_booking_normalises_referral_code(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)

    booking = await BookingService(session).create_booking(2, checkout(trip, batch, referral_code=" ab12cd34 "))

    assert booking.referral_code_used == "AB12CD34"


async def test_trip_not_live_cannot_be_booked(session, factory):
    trip = await factory.trip(booking_live=False)
    batch = await factory.batch(trip)

    with pytest.raises(BusinessLogicError) as exc:
        await BookingService(session).create_booking(1, checkout(trip, batch))

    assert exc.value.rule == "trip_not_bookable"
    assert await count(session, Booking) == 0


async def test_batch_without_enough_seats_is_rejected(session, factory):
    trip = await factory.trip()
    await factory.batch(trip)
    tight = await factory.batch(trip, size=3, booked=2)

    with pytest.raises(BusinessLogicError) as exc:
        await BookingService(session).create_booking(1, checkout(trip, tight))

    assert exc.value.rule == "batch_unavailable"
    assert await count(session, Booking) == 0


async def test_unknown_batch_is_not_found(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    other_trip = await factory.trip()
    foreign = await factory.batch(other_trip)

    with pytest.raises(NotFoundError):
        await BookingService(session).create_booking(1, checkout(trip, batch, batch_id=foreign.id))


async def test_failed_wallet_credit_rolls_back_the_booking(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)

    with pytest.raises(BusinessLogicError) as exc:
        await BookingService(session).create_booking(1, checkout(trip, batch, wallet_amount=500))

    assert exc.value.rule == "insufficient_wallet_balance"
    assert await count(session, Booking) == 0
    assert await count(session, WhatsAppConsent) == 0


async def test_create_booking_with_wallet_credit(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    await factory.fund_wallet(1, 1000)

    booking = await BookingService(session).create_booking(1, checkout(trip, batch, wallet_amount=500))

    await session.refresh(booking)
    assert booking.subtotal_amount == 20000
    assert booking.wallet_discount == 500
    assert booking.total_amount == 19500


# ---------- payment proof ----------
async def test_submit_payment_proof_moves_to_pending(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(trip, batch)

    await BookingService(session).submit_payment_proof(booking.id, 1, 4000, "https://cdn.example.com/p.png")

    await session.refresh(booking)
    assert booking.booking_status == BookingStatus.pending.value
    assert booking.advance_paid == 4000
    assert booking.advance_screenshot_url == "https://cdn.example.com/p.png"


async def test_payment_proof_for_someone_elses_booking(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(trip, batch, user_id=1)

    with pytest.raises(NotFoundError):
        await BookingService(session).submit_payment_proof(booking.id, 2, 4000)


# ---------- verification ----------
async def test_verify_takes_seats_and_notifies(session, factory, sender):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(
        trip, batch, advance_paid=4000, booking_status=BookingStatus.pending.value
    )

    await BookingService(session, sender).verify_advance_payment(booking.id, STAFF_ID)

    await session.refresh(booking)
    await session.refresh(batch)
    assert booking.booking_status == BookingStatus.confirmed.value
    assert booking.payment_status == PaymentStatus.advance_verified.value
    assert booking.verified_by == STAFF_ID
    assert batch.seats_booked == 2

    assert len(sender.sent) == 1
    assert "Booking Confirmed" in sender.sent[0][1]
    log = await session.scalar(select(WhatsAppMessageLog))
    assert log.status == "sent"
    assert log.message_type == "booking_confirmation"

    audit = await session.scalar(select(AuditLog).where(AuditLog.action_type == "booking_verified"))
    assert audit.entity_id == str(booking.id)


async def test_verify_full_advance_marks_fully_paid(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(trip, batch)

    await BookingService(session).verify_advance_payment(booking.id, STAFF_ID, advance_amount=20000)

    await session.refresh(booking)
    assert booking.payment_status == PaymentStatus.fully_paid.value
    assert booking.balance_due == 0


async def test_verify_requires_an_advance(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(trip, batch)

    with pytest.raises(ValidationError):
        await BookingService(session).verify_advance_payment(booking.id, STAFF_ID)


async def test_verify_credits_referral_once(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    code = await WalletService(session).generate_referral_code(1)
    await session.commit()
    booking = await factory.booking(
        trip, batch, user_id=2, advance_paid=4000,
        booking_status=BookingStatus.pending.value, referral_code=code,
    )
    service = BookingService(session)

    await service.verify_advance_payment(booking.id, STAFF_ID)
    await service.verify_advance_payment(booking.id, STAFF_ID)

    await session.refresh(batch)
    assert batch.seats_booked == 2
    assert await count(session, ReferralEarning) == 1
    overview = await WalletService(session).get_overview(1)
    assert overview["balance"] == 250


async def test_verify_full_batch_conflicts(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip, size=3, booked=2)
    booking = await factory.booking(
        trip, batch, advance_paid=4000, booking_status=BookingStatus.pending.value
    )

    with pytest.raises(ConflictError) as exc:
        await BookingService(session).verify_advance_payment(booking.id, STAFF_ID)

    assert exc.value.details["rule"] == "batch_full"
    await session.refresh(booking)
    await session.refresh(batch)
    assert booking.booking_status == BookingStatus.pending.value
    assert batch.seats_booked == 2


async def test_verify_expired_booking_is_refused(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(
        trip, batch, advance_paid=4000,
        booking_status=BookingStatus.expired.value, payment_status=PaymentStatus.expired.value,
    )

    with pytest.raises(BusinessLogicError) as exc:
        await BookingService(session).verify_advance_payment(booking.id, STAFF_ID)
    assert exc.value.rule == "invalid_status_transition"


# ---------- balance payments ----------
async def test_balance_payments_settle_the_booking(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip, booked=2)
    booking = await factory.booking(
        trip, batch, advance_paid=4000,
        booking_status=BookingStatus.confirmed.value,
        payment_status=PaymentStatus.advance_verified.value,
    )
    service = BookingService(session)

    await service.record_balance_payment(booking.id, 6000, STAFF_ID)
    await session.refresh(booking)
    assert booking.payment_status == PaymentStatus.balance_pending.value
    assert booking.balance_due == 10000

    with pytest.raises(ValidationError):
        await service.record_balance_payment(booking.id, 10001, STAFF_ID)

    await service.record_balance_payment(booking.id, 10000, STAFF_ID)
    await session.refresh(booking)
    assert booking.payment_status == PaymentStatus.fully_paid.value
    assert booking.advance_paid == 20000


async def test_balance_payment_needs_confirmed_booking(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(trip, batch, advance_paid=4000, booking_status=BookingStatus.pending.value)

    with pytest.raises(BusinessLogicError):
        await BookingService(session).record_balance_payment(booking.id, 1000, STAFF_ID)


# ---------- cancellation ----------
async def test_cancel_confirmed_booking_releases_seats(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(trip, batch, advance_paid=4000, booking_status=BookingStatus.pending.value)
    service = BookingService(session)
    await service.verify_advance_payment(booking.id, STAFF_ID)

    await service.cancel_booking(booking.id, STAFF_ID, reason="Customer request")

    await session.refresh(booking)
    await session.refresh(batch)
    assert booking.booking_status == BookingStatus.cancelled.value
    assert booking.cancellation_reason == "Customer request"
    assert booking.cancelled_at is not None
    assert batch.seats_booked == 0


async def test_cancel_pending_booking_leaves_seats(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip, booked=4)
    booking = await factory.booking(trip, batch, advance_paid=4000, booking_status=BookingStatus.pending.value)

    await BookingService(session).cancel_booking(booking.id, STAFF_ID)

    await session.refresh(batch)
    assert batch.seats_booked == 4


async def test_cancel_initiated_booking_is_refused(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(trip, batch)

    with pytest.raises(BusinessLogicError) as exc:
        await BookingService(session).cancel_booking(booking.id, STAFF_ID)
    assert exc.value.rule == "invalid_status_transition"


# ---------- catalogue administration ----------
async def test_booking_live_gate(session, factory):
    service = CatalogService(session)
    trip = await factory.trip(booking_live=False)

    with pytest.raises(BusinessLogicError) as exc:
        await service.set_booking_live(trip.id, True, STAFF_ID)
    assert exc.value.rule == "no_active_batches"

    await factory.batch(trip, size=10, booked=10)
    with pytest.raises(BusinessLogicError) as exc:
        await service.set_booking_live(trip.id, True, STAFF_ID)
    assert exc.value.rule == "no_available_seats"

    await factory.batch(trip, size=10, booked=3)
    live = await service.set_booking_live(trip.id, True, STAFF_ID)
    assert live.booking_live is True

    off = await service.set_booking_live(trip.id, False, STAFF_ID)
    assert off.booking_live is False


async def test_new_trip_starts_offline(session):
    service = CatalogService(session)
    trip = await service.create_trip(
        {"slug": "kedarkantha", "name": "Kedarkantha Trek", "price_default": 12000, "booking_live": True},
        STAFF_ID,
    )
    await session.commit()

    assert trip.booking_live is False
    with pytest.raises(ValidationError):
        await service.create_trip({"slug": "kedarkantha", "name": "Again", "price_default": 1}, STAFF_ID)


async def test_batch_size_cannot_drop_below_seats_booked(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip, size=20, booked=12)
    service = CatalogService(session)

    with pytest.raises(ValidationError):
        await service.update_batch(batch.id, {"batch_size": 11}, STAFF_ID)

    updated = await service.update_batch(batch.id, {"batch_size": 12, "seats_booked": 0}, STAFF_ID)
    assert updated.batch_size == 12
    assert updated.seats_booked == 12


async def test_list_batches_prices_upcoming_batches(session, factory):
    trip = await factory.trip(price_default=10000, price_from_mumbai=11000)
    soon = await factory.batch(trip, start_in_days=5)
    later = await factory.batch(trip, start_in_days=45, price_override=8000)
    await factory.batch(trip, start_in_days=10, status="closed")
    await factory.batch(trip, start_in_days=-3)

    views = await CatalogService(session).list_batches(trip.id, pickup="Mumbai", today=date.today())

    assert [v["id"] for v in views] == [soon.id, later.id]
    assert views[0]["price"]["base_price"] == 11000
    assert views[0]["price"]["effective_price"] == 12100
    assert views[0]["price"]["badges"] == [{"label": "Last Minute", "type": "surge"}]
    assert views[1]["price"]["effective_price"] == 7600
    assert views[1]["end_date"] == date.today() + timedelta(days=50)
