from typing import List, Optional
from fastapi import APIRouter, Query

from tripdesk.api.v1.schemas import TripOut, BatchOut
from tripdesk.deps import SessionDep
from tripdesk.services import CatalogService


router = APIRouter()


@router.get("/trips", response_model=List[TripOut])
async def list_trips(
    sess: SessionDep,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=200),
):
    """Active trips with seat availability and bookability"""
    return await CatalogService(sess).list_trips(skip=skip, limit=limit)


@router.get("/trips/{trip_id}", response_model=TripOut)
async def get_trip(trip_id: int, sess: SessionDep):
    return await CatalogService(sess).get_trip(trip_id)


@router.get("/trips/{trip_id}/batches", response_model=List[BatchOut])
async def list_trip_batches(
    trip_id: int,
    sess: SessionDep,
    pickup: Optional[str] = Query(None, description="Pickup city for city-specific base price"),
):
    """Upcoming batches with the dynamic price computed now"""
    return await CatalogService(sess).list_batches(trip_id, pickup=pickup)
