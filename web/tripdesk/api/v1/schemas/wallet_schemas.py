from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field


class WalletTransactionOut(BaseModel):
    id: int
    amount: int
    type: str
    description: Optional[str]
    reference_id: Optional[int]
    created_at: datetime

    model_config = {
        "from_attributes": True,
    }


class ReferralEarningOut(BaseModel):
    id: int
    referred_user_id: int
    booking_id: int
    amount: int
    status: str
    created_at: datetime

    model_config = {
        "from_attributes": True,
    }


class WalletOut(BaseModel):
    """Schema for the customer wallet view"""
    balance: int
    total_earned: int
    total_spent: int
    is_frozen: bool
    referral_code: str
    referral_link: str
    transactions: List[WalletTransactionOut] = []
    referral_earnings: List[ReferralEarningOut] = []


class ApplyWalletIn(BaseModel):
    amount: int = Field(..., gt=0)


class AdminWalletAdjustment(BaseModel):
    """Schema for admin credit/debit"""
    amount: int = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=500)


class WalletStateOut(BaseModel):
    user_id: int
    balance: int
    total_earned: int
    total_spent: int
    is_frozen: bool

    model_config = {
        "from_attributes": True,
    }


class BroadcastIn(BaseModel):
    message: str = Field(..., min_length=1, max_length=4096)


class BroadcastOut(BaseModel):
    id: int
    status: str
    recipient_count: int
    sent_count: int
    failed_count: int
    created_at: datetime

    model_config = {
        "from_attributes": True,
    }
