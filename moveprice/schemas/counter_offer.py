from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from moveprice.core.enums import CounterOfferDecision, CounterOfferStatus
from moveprice.schemas.booking import BindingOut


class CounterOfferCreate(BaseModel):
    offered_price: int
    reason: Optional[str] = Field(None, max_length=255)
    message: Optional[str] = None
    expiration_hours: Optional[int] = None


class CounterOfferRespond(BaseModel):
    decision: CounterOfferDecision
    response_message: Optional[str] = None


class CounterOfferOut(BaseModel):
    id: int
    quotation_id: int
    original_price: int
    offered_price: int
    price_difference: int
    percentage_change: float
    reason: Optional[str] = None
    message: Optional[str] = None
    status: CounterOfferStatus
    offered_by: int
    expires_at: datetime
    hours_until_expiration: float
    is_expired: bool
    can_respond: bool
    responded_at: Optional[datetime] = None
    responded_by: Optional[int] = None
    response_message: Optional[str] = None
    created_at: datetime


class CounterOfferResponseOut(BaseModel):
    counter_offer: CounterOfferOut
    binding: Optional[BindingOut] = None
