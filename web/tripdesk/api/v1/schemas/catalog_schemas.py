from typing import List, Optional
from datetime import date
from pydantic import BaseModel, Field, model_validator


class PriceBadgeOut(BaseModel):
    label: str
    type: str


class PriceOut(BaseModel):
    """Dynamic price computed at read time"""
    base_price: int
    effective_price: int
    adjustment_percent: int
    badges: List[PriceBadgeOut] = []


class TripOut(BaseModel):
    """Schema for trip list/detail responses"""
    id: int
    slug: str
    name: str
    summary: Optional[str] = None
    duration: Optional[str] = None
    price: int
    booking_live: bool
    available_seats: int
    has_active_batches: bool
    is_bookable: bool
    inclusions: List[str] = []
    exclusions: List[str] = []


class BatchOut(BaseModel):
    """Schema for a batch with its current price"""
    id: int
    trip_id: int
    batch_name: str
    start_date: date
    end_date: date
    batch_size: int
    seats_booked: int
    available_seats: int
    status: str
    price: PriceOut


class TripIn(BaseModel):
    """Schema for creating trips"""
    slug: str = Field(..., min_length=1, max_length=120, pattern=r"^[a-z0-9-]+$")
    name: str = Field(..., min_length=1, max_length=200)
    summary: Optional[str] = None
    duration: Optional[str] = None
    price_default: int = Field(..., gt=0)
    price_from_pune: Optional[int] = Field(None, gt=0)
    price_from_mumbai: Optional[int] = Field(None, gt=0)
    advance_amount: Optional[int] = Field(None, gt=0)
    capacity: int = Field(40, gt=0)
    inclusions: List[str] = []
    exclusions: List[str] = []


class TripAdminOut(BaseModel):
    id: int
    slug: str
    name: str
    price_default: int
    booking_live: bool
    is_active: bool

    model_config = {
        "from_attributes": True,
    }


class BookingLiveUpdate(BaseModel):
    booking_live: bool


class BatchIn(BaseModel):
    """Schema for creating batches"""
    batch_name: str = Field(..., min_length=1, max_length=120)
    start_date: date
    end_date: date
    batch_size: int = Field(..., gt=0)
    status: str = Field("upcoming", pattern="^(upcoming|active|closed)$")
    price_override: Optional[int] = Field(None, gt=0)

    @model_validator(mode="after")
    def _dates_in_order(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class BatchUpdate(BaseModel):
    """Schema for updating batches; only provided fields change"""
    batch_name: Optional[str] = Field(None, min_length=1, max_length=120)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    batch_size: Optional[int] = Field(None, gt=0)
    status: Optional[str] = Field(None, pattern="^(upcoming|active|closed)$")
    price_override: Optional[int] = Field(None, gt=0)


class BatchAdminOut(BaseModel):
    id: int
    trip_id: int
    batch_name: str
    start_date: date
    end_date: date
    batch_size: int
    seats_booked: int
    status: str
    price_override: Optional[int] = None

    model_config = {
        "from_attributes": True,
    }
