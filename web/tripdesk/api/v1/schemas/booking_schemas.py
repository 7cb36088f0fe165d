from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field, EmailStr


class BookingCreate(BaseModel):
    """Schema for checkout"""
    trip_id: int = Field(..., gt=0)
    batch_id: int = Field(..., gt=0)
    num_travelers: int = Field(..., ge=1, le=50)
    full_name: str = Field(..., min_length=1, max_length=128)
    email: EmailStr
    phone: str = Field(..., min_length=6, max_length=32)
    pickup_location: Optional[str] = Field(None, max_length=32)
    referral_code: Optional[str] = Field(None, max_length=32)
    whatsapp_optin: bool = False
    wallet_amount: int = Field(0, ge=0)


class PaymentProofIn(BaseModel):
    amount: int = Field(..., gt=0)
    screenshot_url: Optional[str] = Field(None, max_length=512)


class VerifyPaymentIn(BaseModel):
    advance_amount: Optional[int] = Field(None, gt=0)


class BalancePaymentIn(BaseModel):
    amount: int = Field(..., gt=0)


class CancelBookingIn(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class BookingOut(BaseModel):
    """Schema for booking responses"""
    id: int
    user_id: Optional[int]
    trip_id: int
    batch_id: Optional[int]
    full_name: str
    email: str
    phone: str
    pickup_location: Optional[str]
    num_travelers: int
    unit_price: int
    subtotal_amount: int
    wallet_discount: int
    total_amount: int
    advance_paid: int
    balance_due: int
    booking_status: str
    payment_status: str
    referral_code_used: Optional[str]
    whatsapp_optin: bool
    verified_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    created_at: datetime

    model_config = {
        "from_attributes": True,
    }


class CheckoutOut(BookingOut):
    """Booking plus the advance the customer should pay now"""
    advance_due: int
