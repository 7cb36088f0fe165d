from typing import Optional, List
from datetime import datetime
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tripdesk.core import BaseRepository
from tripdesk.models import Wallet, WalletTransaction, WalletCreditLot, ReferralCode, ReferralEarning
from tripdesk.statuses import LotStatus


class WalletRepository(BaseRepository[Wallet]):
    """Wallet, ledger and credit-lot persistence.

    Balance changes go through conditional UPDATE statements so that two
    concurrent callers can never both spend the same rupee; the caller checks
    the returned flag and aborts its unit of work on ``False``.
    """
    
    def __init__(self, session: AsyncSession):
        super().__init__(Wallet, session)
    
    async def get_by_user(self, user_id: int, *, for_update: bool = False) -> Optional[Wallet]:
        query = select(Wallet).where(Wallet.user_id == user_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: int) -> Wallet:
        """Wallets are created lazily on the first credit-earning event"""
        wallet = await self.get_by_user(user_id, for_update=True)
        if wallet is None:
            wallet = await self.create(obj_in={"user_id": user_id})
        return wallet

    async def add_credit(self, wallet: Wallet, amount: int) -> bool:
        """Increase balance and total_earned unless the wallet is frozen"""
        stmt = (
            update(Wallet)
            .where(Wallet.id == wallet.id, Wallet.is_frozen == False)  # noqa: E712
            .values(
                balance=Wallet.balance + amount,
                total_earned=Wallet.total_earned + amount,
                updated_at=datetime.utcnow(),
            )
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return False
        await self.session.refresh(wallet)
        return True

    async def add_debit(self, wallet: Wallet, amount: int) -> bool:
        """Decrease balance and increase total_spent if funds suffice and the wallet is not frozen"""
        stmt = (
            update(Wallet)
            .where(
                Wallet.id == wallet.id,
                Wallet.balance >= amount,
                Wallet.is_frozen == False,  # noqa: E712
            )
            .values(
                balance=Wallet.balance - amount,
                total_spent=Wallet.total_spent + amount,
                updated_at=datetime.utcnow(),
            )
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return False
        await self.session.refresh(wallet)
        return True

    async def add_transaction(
        self,
        wallet: Wallet,
        *,
        amount: int,
        type: str,
        description: str,
        reference_id: Optional[int] = None,
        created_by: Optional[int] = None,
    ) -> WalletTransaction:
        tx = WalletTransaction(
            wallet_id=wallet.id,
            user_id=wallet.user_id,
            amount=amount,
            type=type,
            description=description,
            reference_id=reference_id,
            created_by=created_by,
        )
        self.session.add(tx)
        await self.session.flush()
        return tx

    async def add_lot(self, wallet: Wallet, tx: WalletTransaction, expires_at: Optional[datetime]) -> WalletCreditLot:
        lot = WalletCreditLot(
            wallet_id=wallet.id,
            transaction_id=tx.id,
            amount=tx.amount,
            remaining=tx.amount,
            expires_at=expires_at,
            status=LotStatus.active.value,
        )
        self.session.add(lot)
        await self.session.flush()
        return lot

    async def consume_lots(self, wallet_id: int, amount: int) -> int:
        """Draw *amount* from active lots, soonest expiry first (never-expiring last).

        Returns how much could not be covered by lots; callers already checked
        the balance, so a non-zero return only happens for legacy balances that
        predate lot tracking.
        """
        query = (
            select(WalletCreditLot)
            .where(
                WalletCreditLot.wallet_id == wallet_id,
                WalletCreditLot.status == LotStatus.active.value,
                WalletCreditLot.remaining > 0,
            )
            .order_by(
                WalletCreditLot.expires_at.is_(None),
                WalletCreditLot.expires_at,
                WalletCreditLot.id,
            )
            .with_for_update()
        )
        lots = (await self.session.execute(query)).scalars().all()
        
        left = amount
        for lot in lots:
            if left <= 0:
                break
            take = min(lot.remaining, left)
            lot.remaining -= take
            left -= take
            if lot.remaining == 0:
                lot.status = LotStatus.consumed.value
        await self.session.flush()
        return left

    async def get_expired_lots(self, now: datetime) -> List[WalletCreditLot]:
        query = (
            select(WalletCreditLot)
            .where(
                WalletCreditLot.status == LotStatus.active.value,
                WalletCreditLot.remaining > 0,
                WalletCreditLot.expires_at.is_not(None),
                WalletCreditLot.expires_at <= now,
            )
            .order_by(WalletCreditLot.wallet_id, WalletCreditLot.id)
            .with_for_update()
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_transactions(self, wallet_id: int, *, limit: int = 50) -> List[WalletTransaction]:
        query = (
            select(WalletTransaction)
            .where(WalletTransaction.wallet_id == wallet_id)
            .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def has_transaction_of_type(self, user_id: int, type: str) -> bool:
        query = select(WalletTransaction.id).where(
            WalletTransaction.user_id == user_id,
            WalletTransaction.type == type,
        ).limit(1)
        return (await self.session.execute(query)).first() is not None

    # ---------- Referral codes ----------
    async def get_referral_code_by_user(self, user_id: int) -> Optional[ReferralCode]:
        result = await self.session.execute(select(ReferralCode).where(ReferralCode.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_referral_code(self, code: str) -> Optional[ReferralCode]:
        result = await self.session.execute(
            select(ReferralCode).where(ReferralCode.code == code.strip().upper())
        )
        return result.scalar_one_or_none()

    async def get_earning(self, referred_user_id: int, booking_id: int) -> Optional[ReferralEarning]:
        result = await self.session.execute(
            select(ReferralEarning).where(
                ReferralEarning.referred_user_id == referred_user_id,
                ReferralEarning.booking_id == booking_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_earnings_for_referrer(self, referrer_user_id: int, *, limit: int = 50) -> List[ReferralEarning]:
        result = await self.session.execute(
            select(ReferralEarning)
            .where(ReferralEarning.referrer_user_id == referrer_user_id)
            .order_by(ReferralEarning.created_at.desc(), ReferralEarning.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
