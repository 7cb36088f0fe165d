from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from tripdesk.core import BusinessLogicError, NotFoundError, ValidationError
from tripdesk.infrastructure.repositories import WalletRepository
from tripdesk.models import ReferralCode, ReferralEarning, Wallet, WalletCreditLot, WalletTransaction
from tripdesk.services import MaintenanceService, WalletService
from tripdesk.statuses import LotStatus, TransactionType

REFERRER = 1
FRIEND = 2


async def wallet_of(session, user_id) -> Wallet:
    wallet = await WalletRepository(session).get_by_user(user_id)
    if wallet is not None:
        await session.refresh(wallet)
    return wallet


def assert_consistent(wallet: Wallet):
    assert wallet.balance == wallet.total_earned - wallet.total_spent
    assert wallet.balance >= 0


async def count_tx(session, user_id, type_: TransactionType) -> int:
    return await session.scalar(
        select(func.count()).select_from(WalletTransaction).where(
            WalletTransaction.user_id == user_id, WalletTransaction.type == type_.value
        )
    )


@pytest.fixture
async def referral_setup(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(trip, batch, user_id=FRIEND)
    code = await WalletService(session).generate_referral_code(REFERRER)
    await session.commit()
    return code, booking


# ---------- referral codes ----------
async def test_generate_referral_code_returns_the_same_code(session):
    service = WalletService(session)
    first = await service.generate_referral_code(REFERRER)
    second = await service.generate_referral_code(REFERRER)
    await session.commit()

    assert first == second
    assert len(first) == 8
    count = await session.scalar(select(func.count()).select_from(ReferralCode))
    assert count == 1


# ---------- credit_referral ----------
async def test_credit_referral_credits_exactly_once(session, referral_setup):
    code, booking = referral_setup
    service = WalletService(session)

    assert await service.credit_referral(code, FRIEND, booking.id) is True
    await session.commit()
    assert await service.credit_referral(code, FRIEND, booking.id) is False
    await session.commit()

    wallet = await wallet_of(session, REFERRER)
    assert wallet.balance == 250
    assert wallet.total_earned == 250
    assert_consistent(wallet)
    assert await count_tx(session, REFERRER, TransactionType.referral_credit) == 1
    assert await session.scalar(select(func.count()).select_from(ReferralEarning)) == 1

    referral = await session.scalar(select(ReferralCode).where(ReferralCode.user_id == REFERRER))
    await session.refresh(referral)
    assert referral.uses_count == 1


async def test_referral_credit_expires_after_a_year(session, referral_setup):
    code, booking = referral_setup
    await WalletService(session).credit_referral(code.lower(), FRIEND, booking.id)
    await session.commit()

    lot = await session.scalar(select(WalletCreditLot))
    assert lot.remaining == 250
    assert timedelta(days=364) < lot.expires_at - datetime.utcnow() <= timedelta(days=365)


async def test_unknown_code_is_a_no_op(session, referral_setup):
    _, booking = referral_setup

    assert await WalletService(session).credit_referral("NOPE1234", FRIEND, booking.id) is False
    assert await session.scalar(select(func.count()).select_from(Wallet)) == 0


async def test_self_referral_is_rejected(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(trip, batch, user_id=REFERRER)
    code = await WalletService(session).generate_referral_code(REFERRER)

    assert await WalletService(session).credit_referral(code, REFERRER, booking.id) is False


async def test_frozen_referrer_is_not_credited(session, factory, referral_setup):
    code, booking = referral_setup
    await factory.fund_wallet(REFERRER, 100)
    await WalletService(session).set_frozen(REFERRER, True, staff_id=900)
    await session.commit()

    assert await WalletService(session).credit_referral(code, FRIEND, booking.id) is False

    wallet = await wallet_of(session, REFERRER)
    assert wallet.balance == 100
    assert await count_tx(session, REFERRER, TransactionType.referral_credit) == 0


async def test_booking_of_another_user_is_not_credited(session, referral_setup):
    code, booking = referral_setup

    assert await WalletService(session).credit_referral(code, 3, booking.id) is False


# ---------- apply_wallet_credit ----------
async def test_apply_wallet_credit_discounts_booking(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(trip, batch, user_id=FRIEND, unit_price=10000, travelers=2)
    await factory.fund_wallet(FRIEND, 1000)

    assert await WalletService(session).apply_wallet_credit(FRIEND, booking.id, 400) is True
    await session.commit()

    await session.refresh(booking)
    assert booking.total_amount == 19600
    assert booking.wallet_discount == 400
    assert booking.subtotal_amount == 20000

    wallet = await wallet_of(session, FRIEND)
    assert wallet.balance == 600
    assert wallet.total_spent == 400
    assert_consistent(wallet)

    debit = await session.scalar(
        select(WalletTransaction).where(WalletTransaction.type == TransactionType.booking_debit.value)
    )
    assert debit.amount == -400
    assert debit.reference_id == booking.id


async def test_apply_wallet_credit_fails_closed(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(trip, batch, user_id=FRIEND)
    other = await factory.booking(trip, batch, user_id=3)
    await factory.fund_wallet(FRIEND, 500)
    service = WalletService(session)

    assert await service.apply_wallet_credit(FRIEND, booking.id, 501) is False
    assert await service.apply_wallet_credit(FRIEND, booking.id, 0) is False
    assert await service.apply_wallet_credit(FRIEND, booking.id, -10) is False
    assert await service.apply_wallet_credit(FRIEND, other.id, 100) is False
    assert await service.apply_wallet_credit(FRIEND, 999999, 100) is False

    wallet = await wallet_of(session, FRIEND)
    assert wallet.balance == 500
    assert wallet.total_spent == 0
    assert await count_tx(session, FRIEND, TransactionType.booking_debit) == 0


async def test_apply_wallet_credit_only_once_per_booking(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(trip, batch, user_id=FRIEND)
    await factory.fund_wallet(FRIEND, 1000)
    service = WalletService(session)

    assert await service.apply_wallet_credit(FRIEND, booking.id, 200) is True
    assert await service.apply_wallet_credit(FRIEND, booking.id, 200) is False


async def test_frozen_wallet_cannot_be_spent(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(trip, batch, user_id=FRIEND)
    await factory.fund_wallet(FRIEND, 1000)
    await WalletService(session).set_frozen(FRIEND, True, staff_id=900)
    await session.commit()

    assert await WalletService(session).apply_wallet_credit(FRIEND, booking.id, 100) is False


async def test_debits_consume_soonest_expiring_credit_first(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(trip, batch, user_id=FRIEND)
    service = WalletService(session)
    await factory.fund_wallet(FRIEND, 300)          # never expires
    assert await service.credit_signup_bonus(FRIEND)  # expires in 90 days
    await session.commit()

    assert await service.apply_wallet_credit(FRIEND, booking.id, 250)
    await session.commit()

    lots = (await session.scalars(select(WalletCreditLot).order_by(WalletCreditLot.id))).all()
    admin_lot, bonus_lot = lots
    assert bonus_lot.remaining == 0
    assert bonus_lot.status == LotStatus.consumed.value
    assert admin_lot.remaining == 150
    assert admin_lot.status == LotStatus.active.value


# ---------- signup bonus ----------
async def test_signup_bonus_is_granted_once(session):
    service = WalletService(session)

    assert await service.credit_signup_bonus(FRIEND) is True
    await session.commit()
    assert await service.credit_signup_bonus(FRIEND) is False

    wallet = await wallet_of(session, FRIEND)
    assert wallet.balance == 100
    assert await count_tx(session, FRIEND, TransactionType.signup_bonus) == 1


# ---------- admin operations ----------
async def test_admin_debit_errors(session, factory):
    service = WalletService(session)

    with pytest.raises(NotFoundError):
        await service.admin_debit(FRIEND, 10, "Correction", staff_id=900)

    await factory.fund_wallet(FRIEND, 50)
    with pytest.raises(BusinessLogicError) as exc:
        await service.admin_debit(FRIEND, 51, "Correction", staff_id=900)
    assert exc.value.rule == "insufficient_wallet_balance"

    with pytest.raises(ValidationError):
        await service.admin_debit(FRIEND, 10, "   ", staff_id=900)

    await service.set_frozen(FRIEND, True, staff_id=900)
    with pytest.raises(BusinessLogicError) as exc:
        await service.admin_debit(FRIEND, 10, "Correction", staff_id=900)
    assert exc.value.rule == "wallet_frozen"


async def test_ledger_stays_consistent_across_operations(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(trip, batch, user_id=FRIEND)
    service = WalletService(session)

    await service.admin_credit(FRIEND, 700, "Goodwill", staff_id=900)
    assert_consistent(await wallet_of(session, FRIEND))
    await service.credit_signup_bonus(FRIEND)
    assert_consistent(await wallet_of(session, FRIEND))
    await service.admin_debit(FRIEND, 300, "Correction", staff_id=900)
    assert_consistent(await wallet_of(session, FRIEND))
    assert await service.apply_wallet_credit(FRIEND, booking.id, 600) is False
    assert await service.apply_wallet_credit(FRIEND, booking.id, 500) is True
    await session.commit()

    wallet = await wallet_of(session, FRIEND)
    assert_consistent(wallet)
    assert wallet.balance == 0
    assert wallet.total_earned == 800
    assert wallet.total_spent == 800

    ledger_sum = await session.scalar(
        select(func.sum(WalletTransaction.amount)).where(WalletTransaction.wallet_id == wallet.id)
    )
    assert ledger_sum == wallet.balance


# ---------- credit expiry ----------
async def _age_lots(session, days: int = 1):
    for lot in (await session.scalars(select(WalletCreditLot))).all():
        if lot.expires_at is not None:
            lot.expires_at = datetime.utcnow() - timedelta(days=days)
    await session.commit()


async def test_expired_credits_are_removed_once(session, factory):
    service = WalletService(session)
    await factory.fund_wallet(FRIEND, 300)
    await service.credit_signup_bonus(FRIEND)
    await session.commit()
    await _age_lots(session)

    assert await MaintenanceService(session).expire_wallet_credits() == 1
    assert await MaintenanceService(session).expire_wallet_credits() == 0

    wallet = await wallet_of(session, FRIEND)
    assert wallet.balance == 300
    assert wallet.total_spent == 100
    assert_consistent(wallet)
    assert await count_tx(session, FRIEND, TransactionType.credit_expiry) == 1


async def test_only_unspent_part_of_a_credit_expires(session, factory):
    trip = await factory.trip()
    batch = await factory.batch(trip)
    booking = await factory.booking(trip, batch, user_id=FRIEND)
    service = WalletService(session)
    await factory.fund_wallet(FRIEND, 300)
    await service.credit_signup_bonus(FRIEND)
    await service.apply_wallet_credit(FRIEND, booking.id, 60)
    await session.commit()
    await _age_lots(session)

    await MaintenanceService(session).expire_wallet_credits()

    wallet = await wallet_of(session, FRIEND)
    # 400 credited, 60 spent from the bonus, 40 of the bonus lapsed
    assert wallet.balance == 300
    assert_consistent(wallet)
    expiry = await session.scalar(
        select(WalletTransaction).where(WalletTransaction.type == TransactionType.credit_expiry.value)
    )
    assert expiry.amount == -40


async def test_frozen_wallets_are_left_alone_by_expiry(session, factory):
    service = WalletService(session)
    await service.credit_signup_bonus(FRIEND)
    await session.commit()
    await service.set_frozen(FRIEND, True, staff_id=900)
    await session.commit()
    await _age_lots(session)

    assert await MaintenanceService(session).expire_wallet_credits() == 0

    wallet = await wallet_of(session, FRIEND)
    assert wallet.balance == 100
