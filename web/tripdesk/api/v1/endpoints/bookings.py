from typing import List
from fastapi import APIRouter, Depends

from tripdesk.api.v1.schemas import (
    BookingCreate, BookingOut, CheckoutOut, PaymentProofIn, ApplyWalletIn
)
from tripdesk.core import BusinessLogicError
from tripdesk.models import Booking, Trip
from tripdesk.deps import SessionDep
from tripdesk.security import current_user, user_id_of
from tripdesk.services import BookingService, WalletService
from tripdesk.services.booking_service import advance_due_for


router = APIRouter()


async def _checkout_out(sess, booking: Booking) -> CheckoutOut:
    trip = await sess.get(Trip, booking.trip_id)
    data = BookingOut.model_validate(booking).model_dump()
    return CheckoutOut(**data, advance_due=advance_due_for(booking, trip))


@router.post("", response_model=CheckoutOut, status_code=201)
async def create_booking(
    payload: BookingCreate,
    sess: SessionDep,
    user=Depends(current_user),
):
    """Checkout: create an initiated booking at the current dynamic price"""
    service = BookingService(sess)
    booking = await service.create_booking(user_id_of(user), payload.model_dump())
    return await _checkout_out(sess, booking)


@router.get("", response_model=List[BookingOut])
async def my_bookings(sess: SessionDep, user=Depends(current_user)):
    return await BookingService(sess).list_user_bookings(user_id_of(user))


@router.get("/{booking_id}", response_model=CheckoutOut)
async def get_my_booking(booking_id: int, sess: SessionDep, user=Depends(current_user)):
    booking = await BookingService(sess).get_user_booking(booking_id, user_id_of(user))
    return await _checkout_out(sess, booking)


@router.post("/{booking_id}/payment-proof", response_model=BookingOut)
async def submit_payment_proof(
    booking_id: int,
    payload: PaymentProofIn,
    sess: SessionDep,
    user=Depends(current_user),
):
    """Customer reports the advance UPI payment for staff verification"""
    return await BookingService(sess).submit_payment_proof(
        booking_id, user_id_of(user), payload.amount, payload.screenshot_url
    )


@router.post("/{booking_id}/apply-wallet", response_model=BookingOut)
async def apply_wallet(
    booking_id: int,
    payload: ApplyWalletIn,
    sess: SessionDep,
    user=Depends(current_user),
):
    user_id = user_id_of(user)
    applied = await WalletService(sess).apply_wallet_credit(user_id, booking_id, payload.amount)
    if not applied:
        raise BusinessLogicError(
            "Wallet credit could not be applied to this booking",
            rule="insufficient_wallet_balance",
        )
    await sess.commit()
    return await BookingService(sess).get_user_booking(booking_id, user_id)
