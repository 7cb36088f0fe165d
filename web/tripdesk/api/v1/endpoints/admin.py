from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from tripdesk.api.v1.schemas import (
    TripIn, TripAdminOut, BookingLiveUpdate, BatchIn, BatchUpdate, BatchAdminOut,
    BookingOut, VerifyPaymentIn, BalancePaymentIn, CancelBookingIn,
    AdminWalletAdjustment, WalletStateOut, WalletTransactionOut, BroadcastIn, BroadcastOut
)
from tripdesk.deps import SessionDep, SenderDep
from tripdesk.roles import Permission
from tripdesk.security import permission_required, user_id_of
from tripdesk.services import BookingService, CatalogService, WalletService, BroadcastService


router = APIRouter()


# ---------- Trips & batches ----------
@router.post("/trips", response_model=TripAdminOut, status_code=201)
async def create_trip(
    payload: TripIn,
    sess: SessionDep,
    user=Depends(permission_required(Permission.manage_trips)),
):
    return await CatalogService(sess).create_trip(payload.model_dump(), user_id_of(user))


@router.patch("/trips/{trip_id}/booking-live", response_model=TripAdminOut)
async def set_booking_live(
    trip_id: int,
    payload: BookingLiveUpdate,
    sess: SessionDep,
    user=Depends(permission_required(Permission.manage_trips)),
):
    """Open or close public booking for a trip"""
    return await CatalogService(sess).set_booking_live(trip_id, payload.booking_live, user_id_of(user))


@router.post("/trips/{trip_id}/batches", response_model=BatchAdminOut, status_code=201)
async def create_batch(
    trip_id: int,
    payload: BatchIn,
    sess: SessionDep,
    user=Depends(permission_required(Permission.manage_batches)),
):
    return await CatalogService(sess).create_batch(trip_id, payload.model_dump(), user_id_of(user))


@router.patch("/batches/{batch_id}", response_model=BatchAdminOut)
async def update_batch(
    batch_id: int,
    payload: BatchUpdate,
    sess: SessionDep,
    user=Depends(permission_required(Permission.manage_batches)),
):
    return await CatalogService(sess).update_batch(
        batch_id, payload.model_dump(exclude_unset=True), user_id_of(user)
    )


# ---------- Bookings ----------
@router.get(
    "/bookings",
    response_model=List[BookingOut],
    dependencies=[Depends(permission_required(Permission.view_bookings))],
)
async def list_bookings(
    sess: SessionDep,
    booking_status: Optional[str] = Query(None),
    payment_status: Optional[str] = Query(None),
    trip_id: Optional[int] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    return await BookingService(sess).list_bookings(
        booking_status=booking_status,
        payment_status=payment_status,
        trip_id=trip_id,
        skip=skip,
        limit=limit,
    )


@router.post("/bookings/{booking_id}/verify", response_model=BookingOut)
async def verify_booking(
    booking_id: int,
    payload: VerifyPaymentIn,
    sess: SessionDep,
    sender: SenderDep,
    user=Depends(permission_required(Permission.verify_payments)),
):
    """Verify the advance payment and confirm the booking"""
    return await BookingService(sess, sender).verify_advance_payment(
        booking_id, user_id_of(user), payload.advance_amount
    )


@router.post("/bookings/{booking_id}/balance-payment", response_model=BookingOut)
async def record_balance_payment(
    booking_id: int,
    payload: BalancePaymentIn,
    sess: SessionDep,
    user=Depends(permission_required(Permission.verify_payments)),
):
    return await BookingService(sess).record_balance_payment(booking_id, payload.amount, user_id_of(user))


@router.post("/bookings/{booking_id}/cancel", response_model=BookingOut)
async def cancel_booking(
    booking_id: int,
    payload: CancelBookingIn,
    sess: SessionDep,
    user=Depends(permission_required(Permission.cancel_booking)),
):
    return await BookingService(sess).cancel_booking(booking_id, user_id_of(user), payload.reason)


# ---------- Wallets ----------
@router.post("/wallets/{user_id}/credit", response_model=WalletTransactionOut)
async def admin_credit(
    user_id: int,
    payload: AdminWalletAdjustment,
    sess: SessionDep,
    user=Depends(permission_required(Permission.manage_wallets)),
):
    return await WalletService(sess).admin_credit(user_id, payload.amount, payload.description, user_id_of(user))


@router.post("/wallets/{user_id}/debit", response_model=WalletTransactionOut)
async def admin_debit(
    user_id: int,
    payload: AdminWalletAdjustment,
    sess: SessionDep,
    user=Depends(permission_required(Permission.manage_wallets)),
):
    return await WalletService(sess).admin_debit(user_id, payload.amount, payload.description, user_id_of(user))


@router.post("/wallets/{user_id}/freeze", response_model=WalletStateOut)
async def freeze_wallet(
    user_id: int,
    sess: SessionDep,
    user=Depends(permission_required(Permission.manage_wallets)),
):
    return await WalletService(sess).set_frozen(user_id, True, user_id_of(user))


@router.post("/wallets/{user_id}/unfreeze", response_model=WalletStateOut)
async def unfreeze_wallet(
    user_id: int,
    sess: SessionDep,
    user=Depends(permission_required(Permission.manage_wallets)),
):
    return await WalletService(sess).set_frozen(user_id, False, user_id_of(user))


# ---------- Broadcasts ----------
@router.post("/broadcasts", response_model=BroadcastOut, status_code=201)
async def queue_broadcast(
    payload: BroadcastIn,
    sess: SessionDep,
    sender: SenderDep,
    user=Depends(permission_required(Permission.manage_operations)),
):
    """Queue a WhatsApp broadcast; the broadcast job sends it"""
    return await BroadcastService(sess, sender).queue_broadcast(payload.message, user_id_of(user))
