from datetime import datetime

from sqlalchemy import (
    String, Integer, ForeignKey, DateTime, Date, JSON, Boolean, Text,
    UniqueConstraint, CheckConstraint, Index
)
from sqlalchemy.orm import mapped_column, relationship, DeclarativeBase

from .statuses import BookingStatus, PaymentStatus, BatchStatus, LotStatus, BroadcastStatus
import uuid


def _gen_referral_code() -> str:
    """Return random 8-char upper-case code for user referrals."""
    return uuid.uuid4().hex[:8].upper()


class Base(DeclarativeBase): ...


# ---------- Accounts ----------
class User(Base):
    __tablename__ = "users"
    id        = mapped_column(Integer, primary_key=True)
    email     = mapped_column(String(128), unique=True, nullable=True)
    full_name = mapped_column(String(128))
    phone     = mapped_column(String(32))
    created   = mapped_column(DateTime, default=datetime.utcnow)

    roles     = relationship("UserRole", back_populates="user", cascade="all, delete-orphan")


class UserRole(Base):
    __tablename__ = "user_roles"
    id      = mapped_column(Integer, primary_key=True)
    user_id = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    role    = mapped_column(String(32), nullable=False)

    user    = relationship("User", back_populates="roles")

    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uix_user_role"),
    )


# ---------- Trips & departures ----------
class Trip(Base):
    __tablename__ = "trips"
    id                = mapped_column(Integer, primary_key=True)
    slug              = mapped_column(String(120), unique=True, nullable=False)
    name              = mapped_column(String(200), nullable=False)
    summary           = mapped_column(String(2000))
    duration          = mapped_column(String(64))
    # Base price per seat; pickup-city overrides replace it when set
    price_default     = mapped_column(Integer, nullable=False)
    price_from_pune   = mapped_column(Integer, nullable=True)
    price_from_mumbai = mapped_column(Integer, nullable=True)
    advance_amount    = mapped_column(Integer, nullable=True, comment="Advance per traveler")
    capacity          = mapped_column(Integer, default=40, nullable=False)
    # Staff-controlled go-live switch, independent of seat math
    booking_live      = mapped_column(Boolean, default=False, nullable=False)
    is_active         = mapped_column(Boolean, default=True, nullable=False)
    inclusions        = mapped_column(JSON, nullable=True)
    exclusions        = mapped_column(JSON, nullable=True)
    created_at        = mapped_column(DateTime, default=datetime.utcnow)
    updated_at        = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    batches           = relationship("Batch", back_populates="trip", order_by="Batch.start_date")

    def base_price_for(self, pickup: "str | None") -> int:
        """Per-seat base price for the chosen pickup city."""
        pickup = (pickup or "").strip().lower()
        if pickup == "pune" and self.price_from_pune:
            return self.price_from_pune
        if pickup == "mumbai" and self.price_from_mumbai:
            return self.price_from_mumbai
        return self.price_default


class Batch(Base):
    __tablename__ = "batches"
    id             = mapped_column(Integer, primary_key=True)
    trip_id        = mapped_column(ForeignKey("trips.id"), nullable=False, index=True)
    batch_name     = mapped_column(String(120), nullable=False)
    start_date     = mapped_column(Date, nullable=False)
    end_date       = mapped_column(Date, nullable=False)
    batch_size     = mapped_column(Integer, nullable=False)
    # Only ever changed through atomic increment/decrement statements
    seats_booked   = mapped_column(Integer, default=0, nullable=False)
    status         = mapped_column(String(16), default=BatchStatus.upcoming.value, nullable=False)
    price_override = mapped_column(Integer, nullable=True)
    created_at     = mapped_column(DateTime, default=datetime.utcnow)

    trip           = relationship("Trip", back_populates="batches")

    __table_args__ = (
        CheckConstraint("seats_booked >= 0", name="ck_batch_seats_non_negative"),
        CheckConstraint("seats_booked <= batch_size", name="ck_batch_seats_within_size"),
    )

    @property
    def available_seats(self) -> int:
        return max(0, (self.batch_size or 0) - (self.seats_booked or 0))


# ---------- Bookings ----------
class Booking(Base):
    __tablename__ = "bookings"
    id                     = mapped_column(Integer, primary_key=True)
    user_id                = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    trip_id                = mapped_column(ForeignKey("trips.id"), nullable=False)
    batch_id               = mapped_column(ForeignKey("batches.id"), nullable=True)
    full_name              = mapped_column(String(128), nullable=False)
    email                  = mapped_column(String(128), nullable=False)
    phone                  = mapped_column(String(32), nullable=False)
    pickup_location        = mapped_column(String(32), nullable=True)
    num_travelers          = mapped_column(Integer, default=1, nullable=False)
    unit_price             = mapped_column(Integer, nullable=False, comment="Dynamic per-seat price locked at checkout")
    subtotal_amount        = mapped_column(Integer, nullable=False)
    wallet_discount        = mapped_column(Integer, default=0, nullable=False)
    total_amount           = mapped_column(Integer, nullable=False, comment="Payable total after wallet credit")
    advance_paid           = mapped_column(Integer, default=0, nullable=False)
    booking_status         = mapped_column(String(20), default=BookingStatus.initiated.value, nullable=False)
    payment_status         = mapped_column(String(20), default=PaymentStatus.pending.value, nullable=False)
    referral_code_used     = mapped_column(String(32), nullable=True)
    advance_screenshot_url = mapped_column(String(512), nullable=True)
    whatsapp_optin         = mapped_column(Boolean, default=False, nullable=False)
    verified_by            = mapped_column(ForeignKey("users.id"), nullable=True)
    verified_at            = mapped_column(DateTime, nullable=True)
    cancellation_reason    = mapped_column(String(500), nullable=True)
    cancelled_at           = mapped_column(DateTime, nullable=True)
    created_at             = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at             = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    trip                   = relationship("Trip")
    batch                  = relationship("Batch")
    user                   = relationship("User", foreign_keys=[user_id])

    # Abandoned-booking scan filters on these three columns
    __table_args__ = (
        Index("ix_booking_status_payment_created", "booking_status", "payment_status", "created_at"),
        Index("ix_booking_batch", "batch_id"),
    )

    @property
    def balance_due(self) -> int:
        return max(0, (self.total_amount or 0) - (self.advance_paid or 0))


# ---------- Wallet ledger ----------
class Wallet(Base):
    __tablename__ = "wallets"
    id           = mapped_column(Integer, primary_key=True)
    user_id      = mapped_column(ForeignKey("users.id"), unique=True, nullable=False)
    balance      = mapped_column(Integer, default=0, nullable=False)
    total_earned = mapped_column(Integer, default=0, nullable=False)
    total_spent  = mapped_column(Integer, default=0, nullable=False)
    is_frozen    = mapped_column(Boolean, default=False, nullable=False)
    frozen_at    = mapped_column(DateTime, nullable=True)
    created_at   = mapped_column(DateTime, default=datetime.utcnow)
    updated_at   = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    transactions = relationship("WalletTransaction", back_populates="wallet", order_by="WalletTransaction.id")

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallet_balance_non_negative"),
        CheckConstraint("balance = total_earned - total_spent", name="ck_wallet_balance_matches_totals"),
    )


class WalletTransaction(Base):
    """Append-only ledger entry; never updated once written."""

    __tablename__ = "wallet_transactions"
    id           = mapped_column(Integer, primary_key=True)
    wallet_id    = mapped_column(ForeignKey("wallets.id"), nullable=False, index=True)
    user_id      = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    amount       = mapped_column(Integer, nullable=False, comment="Signed: credits positive, debits negative")
    type         = mapped_column(String(32), nullable=False)
    description  = mapped_column(String(500), nullable=True)
    reference_id = mapped_column(ForeignKey("bookings.id"), nullable=True)
    created_by   = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at   = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    wallet       = relationship("Wallet", back_populates="transactions")


class WalletCreditLot(Base):
    """Unspent remainder of one credit entry, used for FIFO spending and expiry."""

    __tablename__ = "wallet_credit_lots"
    id             = mapped_column(Integer, primary_key=True)
    wallet_id      = mapped_column(ForeignKey("wallets.id"), nullable=False, index=True)
    transaction_id = mapped_column(ForeignKey("wallet_transactions.id"), nullable=False, unique=True)
    amount         = mapped_column(Integer, nullable=False)
    remaining      = mapped_column(Integer, nullable=False)
    expires_at     = mapped_column(DateTime, nullable=True, comment="NULL = never expires")
    status         = mapped_column(String(16), default=LotStatus.active.value, nullable=False)
    created_at     = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("remaining >= 0 AND remaining <= amount", name="ck_lot_remaining_bounds"),
        Index("ix_lot_status_expires", "status", "expires_at"),
    )


# ---------- Referrals ----------
class ReferralCode(Base):
    __tablename__ = "referral_codes"
    id         = mapped_column(Integer, primary_key=True)
    user_id    = mapped_column(ForeignKey("users.id"), unique=True, nullable=False)
    code       = mapped_column(String(32), unique=True, nullable=False, default=_gen_referral_code)
    uses_count = mapped_column(Integer, default=0, nullable=False)
    created_at = mapped_column(DateTime, default=datetime.utcnow)


class ReferralEarning(Base):
    __tablename__ = "referral_earnings"
    id               = mapped_column(Integer, primary_key=True)
    referrer_user_id = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    referred_user_id = mapped_column(ForeignKey("users.id"), nullable=False)
    booking_id       = mapped_column(ForeignKey("bookings.id"), nullable=False)
    amount           = mapped_column(Integer, nullable=False)
    status           = mapped_column(String(16), default="credited", nullable=False)
    created_at       = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    # One reward per referred user per booking
    __table_args__ = (
        UniqueConstraint("referred_user_id", "booking_id", name="uix_referral_referred_booking"),
    )


# ---------- Notifications ----------
class BookingNotification(Base):
    __tablename__ = "booking_notifications"
    id         = mapped_column(Integer, primary_key=True)
    booking_id = mapped_column(ForeignKey("bookings.id"), nullable=False)
    type       = mapped_column(String(32), nullable=False)
    channel    = mapped_column(String(16), default="whatsapp", nullable=False)
    status     = mapped_column(String(16), default="sent", nullable=False)
    meta       = mapped_column("metadata", JSON, nullable=True)
    created_at = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("booking_id", "type", name="uix_booking_notification_type"),
    )


class PaymentReminder(Base):
    __tablename__ = "payment_reminders"
    id         = mapped_column(Integer, primary_key=True)
    booking_id = mapped_column(ForeignKey("bookings.id"), nullable=False, index=True)
    channel    = mapped_column(String(16), default="whatsapp", nullable=False)
    message    = mapped_column(Text, nullable=True)
    sent_by    = mapped_column(ForeignKey("users.id"), nullable=True, comment="NULL = scheduled job")
    sent_at    = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class WhatsAppMessageLog(Base):
    __tablename__ = "whatsapp_message_logs"
    id                  = mapped_column(Integer, primary_key=True)
    broadcast_id        = mapped_column(ForeignKey("broadcast_messages.id"), nullable=True)
    booking_id          = mapped_column(ForeignKey("bookings.id"), nullable=True)
    recipient_phone     = mapped_column(String(32), nullable=False)
    recipient_user_id   = mapped_column(ForeignKey("users.id"), nullable=True)
    message_type        = mapped_column(String(32), nullable=False)
    message_body        = mapped_column(Text, nullable=False)
    status              = mapped_column(String(16), nullable=False)
    whatsapp_message_id = mapped_column(String(128), nullable=True)
    error_message       = mapped_column(String(2000), nullable=True)
    sent_at             = mapped_column(DateTime, nullable=True)
    created_at          = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class WhatsAppConsent(Base):
    __tablename__ = "whatsapp_consents"
    id           = mapped_column(Integer, primary_key=True)
    user_id      = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    phone        = mapped_column(String(32), nullable=False)
    opted_in     = mapped_column(Boolean, default=True, nullable=False)
    source       = mapped_column(String(32), default="booking", nullable=False)
    opted_in_at  = mapped_column(DateTime, default=datetime.utcnow)
    opted_out_at = mapped_column(DateTime, nullable=True)


class BroadcastMessage(Base):
    __tablename__ = "broadcast_messages"
    id               = mapped_column(Integer, primary_key=True)
    message_template = mapped_column(Text, nullable=False)
    audience_type    = mapped_column(String(32), default="all_opted_in", nullable=False)
    status           = mapped_column(String(16), default=BroadcastStatus.queued.value, nullable=False)
    recipient_count  = mapped_column(Integer, default=0, nullable=False)
    sent_count       = mapped_column(Integer, default=0, nullable=False)
    failed_count     = mapped_column(Integer, default=0, nullable=False)
    created_by       = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at       = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    sent_at          = mapped_column(DateTime, nullable=True)


# ---------- Audit trail for staff actions ----------
class AuditLog(Base):
    __tablename__ = "audit_logs"
    id          = mapped_column(Integer, primary_key=True)
    user_id     = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    action_type = mapped_column(String(64), nullable=False)
    entity_type = mapped_column(String(32), nullable=False)
    entity_id   = mapped_column(String(64), nullable=False)
    meta        = mapped_column("metadata", JSON, nullable=True)
    created_at  = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
