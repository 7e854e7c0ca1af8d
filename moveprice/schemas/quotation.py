from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from moveprice.core.enums import QuotationStatus
from moveprice.schemas.pricing import PriceRequest, BreakdownLine


class QuotationSubmit(PriceRequest):
    booking_id: int
    notes: Optional[str] = None
    validity_hours: Optional[int] = Field(None, ge=0)


class QuotationReject(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


class QuotationOut(BaseModel):
    id: int
    booking_id: int
    transport_id: int
    status: QuotationStatus
    base_price: int
    distance_price: int
    items_price: int
    floor_fees: int
    time_multiplier: float
    subtotal: int
    total_price: int
    current_price: int
    breakdown: List[BreakdownLine]
    notes: Optional[str] = None
    expires_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
