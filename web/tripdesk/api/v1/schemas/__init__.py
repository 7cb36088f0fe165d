from .catalog_schemas import (
    TripOut, TripIn, TripAdminOut, BatchOut, BatchIn, BatchUpdate, BatchAdminOut,
    BookingLiveUpdate, PriceOut, PriceBadgeOut
)
from .booking_schemas import (
    BookingCreate, BookingOut, CheckoutOut, PaymentProofIn, VerifyPaymentIn,
    BalancePaymentIn, CancelBookingIn
)
from .wallet_schemas import (
    WalletOut, WalletTransactionOut, ReferralEarningOut, ApplyWalletIn,
    AdminWalletAdjustment, WalletStateOut, BroadcastIn, BroadcastOut
)

__all__ = [
    # Catalog schemas
    "TripOut",
    "TripIn",
    "TripAdminOut",
    "BatchOut",
    "BatchIn",
    "BatchUpdate",
    "BatchAdminOut",
    "BookingLiveUpdate",
    "PriceOut",
    "PriceBadgeOut",
    
    # Booking schemas
    "BookingCreate",
    "BookingOut",
    "CheckoutOut",
    "PaymentProofIn",
    "VerifyPaymentIn",
    "BalancePaymentIn",
    "CancelBookingIn",
    
    # Wallet schemas
    "WalletOut",
    "WalletTransactionOut",
    "ReferralEarningOut",
    "ApplyWalletIn",
    "AdminWalletAdjustment",
    "WalletStateOut",
    "BroadcastIn",
    "BroadcastOut",
]
