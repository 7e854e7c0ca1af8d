from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime


class BindingOut(BaseModel):
    booking_id: int
    transport_id: int
    quotation_id: int
    final_price: int
    bound_at: datetime
    counter_offer_id: Optional[int] = None
    rejected_quotation_ids: List[int] = []
    expired_quotation_ids: List[int] = []
    closed_counter_offer_ids: List[int] = []


class BookingBindingOut(BaseModel):
    booking_id: int
    is_bound: bool
    transport_id: Optional[int] = None
    quotation_id: Optional[int] = None
    final_price: Optional[int] = None
    bound_at: Optional[datetime] = None
