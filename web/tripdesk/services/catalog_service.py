from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..availability import batch_available_seats, trip_availability
from ..core import BaseService, BusinessLogicError, NotFoundError, ValidationError
from ..infrastructure.repositories import BatchRepository, TripRepository
from ..models import Batch, Trip
from ..pricing import calculate_dynamic_price
from ..statuses import BatchStatus
from .audit_service import AuditService

logger = logging.getLogger(__name__)

_BATCH_STATUSES = {s.value for s in BatchStatus}


class CatalogService(BaseService):
    """Trips, batches and their computed availability and prices."""

    def __init__(self, session: AsyncSession):
        super().__init__(session)
        self.trips = TripRepository(session)
        self.batches = BatchRepository(session)
        self.audit = AuditService(session)

    # ---------- Read side ----------
    async def list_trips(self, *, skip: int = 0, limit: int = 100) -> List[Dict[str, Any]]:
        trips = await self.trips.list_active_with_batches(skip=skip, limit=limit)
        return [self._trip_summary(trip) for trip in trips]

    async def get_trip(self, trip_id: int) -> Dict[str, Any]:
        trip = await self.trips.get_with_batches(trip_id)
        if not trip or not trip.is_active:
            raise NotFoundError("Trip", trip_id)
        return self._trip_summary(trip)

    def _trip_summary(self, trip: Trip) -> Dict[str, Any]:
        avail = trip_availability(trip.batches, trip.booking_live)
        return {
            "id": trip.id,
            "slug": trip.slug,
            "name": trip.name,
            "summary": trip.summary,
            "duration": trip.duration,
            "price": trip.price_default,
            "booking_live": trip.booking_live,
            "available_seats": avail.available_seats,
            "has_active_batches": avail.has_active_batches,
            "is_bookable": avail.is_bookable,
            "inclusions": trip.inclusions or [],
            "exclusions": trip.exclusions or [],
        }

    async def list_batches(
        self,
        trip_id: int,
        *,
        pickup: Optional[str] = None,
        today: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        """Upcoming and active batches of a trip with a freshly computed price each."""
        trip = await self.trips.get(trip_id)
        if not trip or not trip.is_active:
            raise NotFoundError("Trip", trip_id)

        today = today or date.today()
        batches = await self.batches.get_by_trip(
            trip_id,
            statuses=[BatchStatus.active.value, BatchStatus.upcoming.value],
            from_date=today,
        )
        base = trip.base_price_for(pickup)
        return [self._batch_view(batch, base, today) for batch in batches]

    @staticmethod
    def _batch_view(batch: Batch, trip_base_price: int, today: date) -> Dict[str, Any]:
        base = batch.price_override if batch.price_override is not None else trip_base_price
        available = batch_available_seats(batch)
        price = calculate_dynamic_price(base, batch.batch_size, available, batch.start_date, today=today)
        return {
            "id": batch.id,
            "trip_id": batch.trip_id,
            "batch_name": batch.batch_name,
            "start_date": batch.start_date,
            "end_date": batch.end_date,
            "batch_size": batch.batch_size,
            "seats_booked": batch.seats_booked,
            "available_seats": available,
            "status": batch.status,
            "price": {
                "base_price": price.base_price,
                "effective_price": price.effective_price,
                "adjustment_percent": price.adjustment_percent,
                "badges": [b.to_dict() for b in price.badges],
            },
        }

    # ---------- Staff: trips ----------
    async def create_trip(self, data: Dict[str, Any], staff_id: int) -> Trip:
        if await self.trips.get_by_slug(data["slug"]):
            raise ValidationError(f"Trip slug '{data['slug']}' already exists", field="slug")
        # A new trip is never live until it has sellable batches
        data = {**data, "booking_live": False}
        trip = await self.trips.create(obj_in=data)
        await self.audit.record(
            user_id=staff_id,
            action_type="trip_created",
            entity_type="trip",
            entity_id=trip.id,
            meta={"slug": trip.slug},
        )
        return trip

    async def set_booking_live(self, trip_id: int, live: bool, staff_id: int) -> Trip:
        """Toggle the manual go-live gate.

        Going live is refused with a distinct rule when the trip has no active
        batch (``no_active_batches``) or no free seat (``no_available_seats``).
        Going offline is always allowed.
        """
        trip = await self.trips.get_with_batches(trip_id)
        if not trip:
            raise NotFoundError("Trip", trip_id)

        if live:
            avail = trip_availability(trip.batches, True)
            if not avail.has_active_batches:
                raise BusinessLogicError(
                    "Cannot open bookings: the trip has no active batches",
                    rule="no_active_batches",
                )
            if avail.available_seats <= 0:
                raise BusinessLogicError(
                    "Cannot open bookings: no seats are available in active batches",
                    rule="no_available_seats",
                )

        trip.booking_live = live
        await self.session.flush()
        await self.audit.record(
            user_id=staff_id,
            action_type="trip_booking_live" if live else "trip_booking_closed",
            entity_type="trip",
            entity_id=trip.id,
        )
        logger.info("Trip %s booking_live=%s by user %s", trip.id, live, staff_id)
        return trip

    # ---------- Staff: batches ----------
    def _check_batch_fields(self, data: Dict[str, Any]) -> None:
        if "status" in data and data["status"] not in _BATCH_STATUSES:
            raise ValidationError(f"Unknown batch status '{data['status']}'", field="status")
        if "batch_size" in data and (data["batch_size"] is None or data["batch_size"] <= 0):
            raise ValidationError("batch_size must be positive", field="batch_size")
        if data.get("start_date") and data.get("end_date") and data["end_date"] < data["start_date"]:
            raise ValidationError("end_date cannot be before start_date", field="end_date")
        if data.get("price_override") is not None and data["price_override"] <= 0:
            raise ValidationError("price_override must be positive", field="price_override")

    async def create_batch(self, trip_id: int, data: Dict[str, Any], staff_id: int) -> Batch:
        trip = await self.trips.get(trip_id)
        if not trip:
            raise NotFoundError("Trip", trip_id)

        self._check_batch_fields(data)
        batch = await self.batches.create(obj_in={**data, "trip_id": trip_id, "seats_booked": 0})
        await self.audit.record(
            user_id=staff_id,
            action_type="batch_created",
            entity_type="batch",
            entity_id=batch.id,
            meta={"trip_id": trip_id, "batch_size": batch.batch_size},
        )
        return batch

    async def update_batch(self, batch_id: int, data: Dict[str, Any], staff_id: int) -> Batch:
        """Update status, size, dates or price override. ``seats_booked`` is not editable here."""
        batch = await self.batches.get_for_update(batch_id)
        if not batch:
            raise NotFoundError("Batch", batch_id)

        data = {k: v for k, v in data.items() if k != "seats_booked"}
        merged = {
            "start_date": data.get("start_date", batch.start_date),
            "end_date": data.get("end_date", batch.end_date),
            **{k: v for k, v in data.items() if k not in ("start_date", "end_date")},
        }
        self._check_batch_fields(merged)
        if "batch_size" in data and data["batch_size"] < batch.seats_booked:
            raise ValidationError(
                f"batch_size cannot be below the {batch.seats_booked} seats already booked",
                field="batch_size",
            )

        before = {k: getattr(batch, k) for k in data}
        for field, value in data.items():
            setattr(batch, field, value)
        await self.session.flush()

        await self.audit.record(
            user_id=staff_id,
            action_type="batch_updated",
            entity_type="batch",
            entity_id=batch.id,
            meta={"before": {k: str(v) for k, v in before.items()}, "after": {k: str(v) for k, v in data.items()}},
        )
        return batch
