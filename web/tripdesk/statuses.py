from enum import Enum


class BookingStatus(str, Enum):
    """Customer-facing booking lifecycle."""

    initiated = "initiated"
    pending = "pending"
    confirmed = "confirmed"
    expired = "expired"
    cancelled = "cancelled"


class PaymentStatus(str, Enum):
    """Payment sub-state tracked alongside the booking status."""

    pending = "pending"
    advance_verified = "advance_verified"
    balance_pending = "balance_pending"
    fully_paid = "fully_paid"
    expired = "expired"


class BatchStatus(str, Enum):
    upcoming = "upcoming"
    active = "active"
    closed = "closed"


class TransactionType(str, Enum):
    """Ledger entry kinds. Credits are positive, debits negative."""

    referral_credit = "referral_credit"
    booking_debit = "booking_debit"
    admin_credit = "admin_credit"
    admin_debit = "admin_debit"
    signup_bonus = "signup_bonus"
    credit_expiry = "credit_expiry"


class LotStatus(str, Enum):
    active = "active"
    consumed = "consumed"
    expired = "expired"


class ReminderType(str, Enum):
    """Dedup keys for the trip reminder job (stored in booking_notifications.type)."""

    seven_day = "7day_reminder"
    five_day_balance = "5day_balance"
    final_24hr = "24hr_final"
    review_2day = "2day_review"


class BroadcastStatus(str, Enum):
    queued = "queued"
    sending = "sending"
    sent = "sent"
