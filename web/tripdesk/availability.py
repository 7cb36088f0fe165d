"""Seat availability derived from a trip's batches.

Trip-level numbers are read aggregates for display and gating only; bookings
always check and consume seats of a single batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol

from .statuses import BatchStatus


class BatchLike(Protocol):
    status: str
    batch_size: int
    seats_booked: int


@dataclass(frozen=True)
class TripAvailability:
    available_seats: int
    has_active_batches: bool
    booking_live: bool

    @property
    def is_bookable(self) -> bool:
        return self.booking_live and self.has_active_batches and self.available_seats > 0


def batch_available_seats(batch: BatchLike) -> int:
    return max(0, (batch.batch_size or 0) - (batch.seats_booked or 0))


def is_active(batch: BatchLike) -> bool:
    return batch.status == BatchStatus.active.value


def available_seats(batches: Iterable[BatchLike]) -> int:
    """Sum of free seats over the active batches only."""
    return sum(batch_available_seats(b) for b in batches if is_active(b))


def has_active_batches(batches: Iterable[BatchLike]) -> bool:
    return any(is_active(b) for b in batches)


def trip_availability(batches: Iterable[BatchLike], booking_live: bool) -> TripAvailability:
    batches = list(batches)
    return TripAvailability(
        available_seats=available_seats(batches),
        has_active_batches=has_active_batches(batches),
        booking_live=bool(booking_live),
    )


def is_bookable(batches: Iterable[BatchLike], booking_live: bool) -> bool:
    return trip_availability(batches, booking_live).is_bookable


def is_batch_purchasable(batch: BatchLike, travelers: int = 1) -> bool:
    return is_active(batch) and batch_available_seats(batch) >= max(1, travelers)
