from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from moveprice.core.enums import EventType


class StatusEventOut(BaseModel):
    id: int
    event_type: EventType
    quotation_id: int
    booking_id: int
    counter_offer_id: Optional[int] = None
    status: str
    final_price: Optional[int] = None
    payload: dict
    attempts: int
    delivered_at: Optional[datetime] = None
    last_error: Optional[str] = None
    created_at: datetime


class SweepOut(BaseModel):
    counter_offers_expired: int
    quotations_expired: int
    skipped: int
