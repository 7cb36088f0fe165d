"""Wallet ledger: referral codes, credits, debits and credit expiry.

Every balance change appends exactly one ``WalletTransaction`` in the same
transaction. Positive entries also open a ``WalletCreditLot`` that tracks how
much of that credit is still unspent and when it lapses; debits draw from the
lots soonest-expiring first.

The primitives (``credit_referral``, ``apply_wallet_credit``,
``credit_signup_bonus``) return ``False`` for expected business outcomes and
check all preconditions before writing anything. Admin operations raise typed
errors instead. None of them commit: the caller's unit of work does.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core import (
    BaseService,
    BusinessLogicError,
    NotFoundError,
    ValidationError,
    get_settings,
)
from ..infrastructure.repositories import BookingRepository, WalletRepository
from ..models import ReferralCode, ReferralEarning, Wallet, WalletTransaction
from ..statuses import BookingStatus, LotStatus, TransactionType
from .audit_service import AuditService

logger = logging.getLogger(__name__)

_DISCOUNTABLE_STATUSES = (BookingStatus.initiated.value, BookingStatus.pending.value)


class WalletService(BaseService):
    """Wallet and referral ledger operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session)
        self.settings = get_settings()
        self.wallets = WalletRepository(session)
        self.bookings = BookingRepository(session)
        self.audit = AuditService(session)

    # ------------------------------------------------------------------
    #  Internal ledger writers
    # ------------------------------------------------------------------
    async def _credit(
        self,
        wallet: Wallet,
        *,
        amount: int,
        type: TransactionType,
        description: str,
        validity_days: Optional[int] = None,
        reference_id: Optional[int] = None,
        created_by: Optional[int] = None,
    ) -> Optional[WalletTransaction]:
        if not await self.wallets.add_credit(wallet, amount):
            return None
        tx = await self.wallets.add_transaction(
            wallet,
            amount=amount,
            type=type.value,
            description=description,
            reference_id=reference_id,
            created_by=created_by,
        )
        expires_at = datetime.utcnow() + timedelta(days=validity_days) if validity_days else None
        await self.wallets.add_lot(wallet, tx, expires_at)
        return tx

    async def _debit(
        self,
        wallet: Wallet,
        *,
        amount: int,
        type: TransactionType,
        description: str,
        reference_id: Optional[int] = None,
        created_by: Optional[int] = None,
    ) -> Optional[WalletTransaction]:
        if not await self.wallets.add_debit(wallet, amount):
            return None
        uncovered = await self.wallets.consume_lots(wallet.id, amount)
        if uncovered:
            logger.warning("Wallet %s debit of %s exceeded tracked credit lots by %s", wallet.id, amount, uncovered)
        return await self.wallets.add_transaction(
            wallet,
            amount=-amount,
            type=type.value,
            description=description,
            reference_id=reference_id,
            created_by=created_by,
        )

    # ------------------------------------------------------------------
    #  Referral codes
    # ------------------------------------------------------------------
    async def generate_referral_code(self, user_id: int) -> str:
        """Return the user's referral code, minting one on first call."""
        existing = await self.wallets.get_referral_code_by_user(user_id)
        if existing:
            return existing.code

        code = ReferralCode(user_id=user_id)
        self.session.add(code)
        await self.session.flush()
        logger.info("Issued referral code %s to user %s", code.code, user_id)
        return code.code

    async def credit_referral(self, referrer_code: str, referred_user_id: int, booking_id: int) -> bool:
        """Credit the owner of *referrer_code* for *booking_id* exactly once.

        Returns False without writing when the code is unknown, belongs to the
        referred user, the booking was already credited, the booking is not the
        referred user's, or the referrer's wallet is frozen. The
        ``(referred_user_id, booking_id)`` unique key backs the duplicate check.
        """
        if not referrer_code:
            return False

        code = await self.wallets.get_referral_code(referrer_code)
        if code is None:
            logger.info("Unknown referral code %r on booking %s", referrer_code, booking_id)
            return False
        if code.user_id == referred_user_id:
            logger.info("Self-referral rejected for user %s on booking %s", referred_user_id, booking_id)
            return False

        booking = await self.bookings.get(booking_id)
        if booking is None or booking.user_id != referred_user_id:
            return False

        if await self.wallets.get_earning(referred_user_id, booking_id):
            return False

        # Lock the referrer's wallet, then re-check under the lock
        wallet = await self.wallets.get_by_user(code.user_id, for_update=True)
        if wallet is not None and wallet.is_frozen:
            return False
        if await self.wallets.get_earning(referred_user_id, booking_id):
            return False
        if wallet is None:
            wallet = await self.wallets.get_or_create(code.user_id)

        amount = self.settings.REFERRAL_REWARD_AMOUNT
        tx = await self._credit(
            wallet,
            amount=amount,
            type=TransactionType.referral_credit,
            description=f"Referral reward for booking #{booking_id}",
            validity_days=self.settings.REFERRAL_CREDIT_VALIDITY_DAYS,
            reference_id=booking_id,
        )
        if tx is None:
            return False

        self.session.add(ReferralEarning(
            referrer_user_id=code.user_id,
            referred_user_id=referred_user_id,
            booking_id=booking_id,
            amount=amount,
            status="credited",
        ))
        code.uses_count = (code.uses_count or 0) + 1
        await self.session.flush()

        logger.info("Referral credit %s to user %s for booking %s", amount, code.user_id, booking_id)
        return True

    # ------------------------------------------------------------------
    #  Customer-side primitives
    # ------------------------------------------------------------------
    async def apply_wallet_credit(self, user_id: int, booking_id: int, amount: int) -> bool:
        """Spend *amount* of the user's wallet against an unpaid booking.

        Fails closed: returns False and writes nothing unless the amount is
        positive, the wallet is unfrozen with enough balance, and the booking is
        the user's own, still unpaid and not yet discounted.
        """
        if amount is None or amount <= 0:
            return False

        booking = await self.bookings.get_for_update(booking_id)
        if booking is None or booking.user_id != user_id:
            return False
        if booking.booking_status not in _DISCOUNTABLE_STATUSES:
            return False
        if booking.wallet_discount:
            return False
        if amount > booking.total_amount:
            return False

        wallet = await self.wallets.get_by_user(user_id, for_update=True)
        if wallet is None or wallet.is_frozen or wallet.balance < amount:
            return False

        tx = await self._debit(
            wallet,
            amount=amount,
            type=TransactionType.booking_debit,
            description=f"Wallet credit applied to booking #{booking_id}",
            reference_id=booking_id,
        )
        if tx is None:
            return False

        booking.total_amount -= amount
        booking.wallet_discount = (booking.wallet_discount or 0) + amount
        await self.session.flush()
        return True

    async def credit_signup_bonus(self, user_id: int) -> bool:
        """One-off welcome credit; a second call is a no-op."""
        amount = self.settings.SIGNUP_BONUS_AMOUNT
        if amount <= 0:
            return False
        if await self.wallets.has_transaction_of_type(user_id, TransactionType.signup_bonus.value):
            return False

        wallet = await self.wallets.get_or_create(user_id)
        if wallet.is_frozen:
            return False
        if await self.wallets.has_transaction_of_type(user_id, TransactionType.signup_bonus.value):
            return False

        tx = await self._credit(
            wallet,
            amount=amount,
            type=TransactionType.signup_bonus,
            description="Welcome bonus",
            validity_days=self.settings.SIGNUP_BONUS_VALIDITY_DAYS,
        )
        return tx is not None

    # ------------------------------------------------------------------
    #  Staff operations
    # ------------------------------------------------------------------
    async def admin_credit(self, user_id: int, amount: int, description: str, staff_id: int) -> WalletTransaction:
        if amount is None or amount <= 0:
            raise ValidationError("Amount must be positive", field="amount")
        if not (description or "").strip():
            raise ValidationError("A description is required", field="description")

        wallet = await self.wallets.get_or_create(user_id)
        if wallet.is_frozen:
            raise BusinessLogicError("Wallet is frozen", rule="wallet_frozen")

        tx = await self._credit(
            wallet,
            amount=amount,
            type=TransactionType.admin_credit,
            description=description.strip(),
            created_by=staff_id,
        )
        if tx is None:
            raise BusinessLogicError("Wallet is frozen", rule="wallet_frozen")

        await self.audit.record(
            user_id=staff_id,
            action_type="wallet_admin_credit",
            entity_type="wallet",
            entity_id=wallet.id,
            meta={"user_id": user_id, "amount": amount, "description": description.strip()},
        )
        return tx

    async def admin_debit(self, user_id: int, amount: int, description: str, staff_id: int) -> WalletTransaction:
        if amount is None or amount <= 0:
            raise ValidationError("Amount must be positive", field="amount")
        if not (description or "").strip():
            raise ValidationError("A description is required", field="description")

        wallet = await self.wallets.get_by_user(user_id, for_update=True)
        if wallet is None:
            raise NotFoundError("Wallet", user_id)
        if wallet.is_frozen:
            raise BusinessLogicError("Wallet is frozen", rule="wallet_frozen")
        if wallet.balance < amount:
            raise BusinessLogicError("Insufficient wallet balance", rule="insufficient_wallet_balance")

        tx = await self._debit(
            wallet,
            amount=amount,
            type=TransactionType.admin_debit,
            description=description.strip(),
            created_by=staff_id,
        )
        if tx is None:
            raise BusinessLogicError("Insufficient wallet balance", rule="insufficient_wallet_balance")

        await self.audit.record(
            user_id=staff_id,
            action_type="wallet_admin_debit",
            entity_type="wallet",
            entity_id=wallet.id,
            meta={"user_id": user_id, "amount": amount, "description": description.strip()},
        )
        return tx

    async def set_frozen(self, user_id: int, frozen: bool, staff_id: int) -> Wallet:
        """Freeze or unfreeze a wallet. Independent of balance."""
        wallet = await self.wallets.get_by_user(user_id, for_update=True)
        if wallet is None:
            raise NotFoundError("Wallet", user_id)

        wallet.is_frozen = frozen
        wallet.frozen_at = datetime.utcnow() if frozen else None
        await self.session.flush()

        await self.audit.record(
            user_id=staff_id,
            action_type="wallet_frozen" if frozen else "wallet_unfrozen",
            entity_type="wallet",
            entity_id=wallet.id,
            meta={"user_id": user_id},
        )
        return wallet

    # ------------------------------------------------------------------
    #  Maintenance
    # ------------------------------------------------------------------
    async def expire_wallet_credits(self, now: Optional[datetime] = None) -> int:
        """Expire the unspent remainder of every credit past its validity.

        Each affected wallet gets one ``credit_expiry`` entry for the sum of its
        lapsed lots. Frozen wallets are left alone until unfrozen. Returns the
        number of lots expired.
        """
        now = now or datetime.utcnow()
        lots = await self.wallets.get_expired_lots(now)

        by_wallet = defaultdict(list)
        for lot in lots:
            by_wallet[lot.wallet_id].append(lot)

        expired = 0
        for wallet_id, wallet_lots in by_wallet.items():
            wallet = await self.wallets.get_for_update(wallet_id)
            if wallet is None or wallet.is_frozen:
                continue

            amount = min(sum(lot.remaining for lot in wallet_lots), wallet.balance)
            if amount > 0:
                if not await self.wallets.add_debit(wallet, amount):
                    continue
                await self.wallets.add_transaction(
                    wallet,
                    amount=-amount,
                    type=TransactionType.credit_expiry.value,
                    description="Unused credit expired",
                )

            for lot in wallet_lots:
                lot.remaining = 0
                lot.status = LotStatus.expired.value
            expired += len(wallet_lots)

        await self.session.flush()
        if expired:
            logger.info("Expired %s wallet credit lots across %s wallets", expired, len(by_wallet))
        return expired

    # ------------------------------------------------------------------
    #  Read side
    # ------------------------------------------------------------------
    async def get_overview(self, user_id: int) -> Dict[str, Any]:
        """Balance, last 50 transactions, referral earnings and the share link."""
        wallet = await self.wallets.get_by_user(user_id)
        transactions: List[WalletTransaction] = []
        if wallet is not None:
            transactions = await self.wallets.get_transactions(wallet.id, limit=50)
        earnings: List[ReferralEarning] = await self.wallets.get_earnings_for_referrer(user_id)
        code = await self.generate_referral_code(user_id)

        return {
            "balance": wallet.balance if wallet else 0,
            "total_earned": wallet.total_earned if wallet else 0,
            "total_spent": wallet.total_spent if wallet else 0,
            "is_frozen": wallet.is_frozen if wallet else False,
            "referral_code": code,
            "referral_link": f"{self.settings.SITE_URL.rstrip('/')}/trips?ref={code}",
            "transactions": transactions,
            "referral_earnings": earnings,
        }
