from sqlalchemy import BigInteger, Column, DateTime, Enum, Integer, JSON, String, Text
from moveprice.models.base import BaseModel
from moveprice.core.enums import EventType


class StatusEvent(BaseModel):
    """Outbox row, written in the same transaction as the status transition it announces."""
    __tablename__ = "status_events"

    event_type = Column(Enum(EventType, native_enum=False, length=40), nullable=False)
    quotation_id = Column(Integer, nullable=False, index=True)
    booking_id = Column(Integer, nullable=False, index=True)
    counter_offer_id = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False)
    final_price = Column(BigInteger, nullable=True)
    payload = Column(JSON, nullable=False)

    delivered_at = Column(DateTime(timezone=True), nullable=True, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
