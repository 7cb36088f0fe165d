from .trip_repository import TripRepository
from .batch_repository import BatchRepository
from .booking_repository import BookingRepository
from .wallet_repository import WalletRepository

__all__ = [
    "TripRepository",
    "BatchRepository",
    "BookingRepository",
    "WalletRepository",
]
