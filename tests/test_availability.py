from types import SimpleNamespace

from tripdesk.availability import (
    available_seats,
    batch_available_seats,
    has_active_batches,
    is_batch_purchasable,
    is_bookable,
    trip_availability,
)


def batch(status="active", size=20, booked=0):
    return SimpleNamespace(status=status, batch_size=size, seats_booked=booked)


def test_available_seats_counts_only_active_batches():
    batches = [batch(booked=5), batch(status="upcoming", booked=0), batch(status="closed"), batch(size=10, booked=10)]

    assert available_seats(batches) == 15


def test_overbooked_batch_never_goes_negative():
    assert batch_available_seats(batch(size=10, booked=12)) == 0
    assert available_seats([batch(size=10, booked=12), batch(size=5)]) == 5


def test_not_bookable_when_booking_live_is_off():
    assert not is_bookable([batch()], booking_live=False)


def test_not_bookable_without_active_batches():
    batches = [batch(status="upcoming"), batch(status="closed")]

    assert not has_active_batches(batches)
    assert not is_bookable(batches, booking_live=True)


def test_not_bookable_when_active_batches_are_full():
    assert not is_bookable([batch(size=10, booked=10)], booking_live=True)


def test_bookable_only_when_all_three_conditions_hold():
    avail = trip_availability([batch(booked=19)], booking_live=True)

    assert avail.available_seats == 1
    assert avail.has_active_batches
    assert avail.is_bookable


def test_no_batches_at_all():
    avail = trip_availability([], booking_live=True)

    assert avail.available_seats == 0
    assert not avail.is_bookable


def test_batch_purchasable_needs_room_for_whole_party():
    assert is_batch_purchasable(batch(size=10, booked=7), travelers=3)
    assert not is_batch_purchasable(batch(size=10, booked=8), travelers=3)
    assert not is_batch_purchasable(batch(status="upcoming"), travelers=1)
