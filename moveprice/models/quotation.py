from sqlalchemy import (
    BigInteger, Column, DateTime, Enum, ForeignKey, Index, Integer, JSON, Numeric, String, Text, text,
)
from moveprice.models.base import BaseModel
from moveprice.core.enums import QuotationStatus


class Quotation(BaseModel):
    __tablename__ = "quotations"
    __table_args__ = (
        # One open offer per transport and booking.
        Index(
            "uq_quotations_pending_per_transport",
            "booking_id",
            "transport_id",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )

    booking_id = Column(ForeignKey("bookings.id"), nullable=False, index=True)
    transport_id = Column(Integer, nullable=False, index=True)

    base_price = Column(BigInteger, nullable=False)
    distance_price = Column(BigInteger, nullable=False)
    items_price = Column(BigInteger, nullable=False)
    floor_fees = Column(BigInteger, nullable=False)
    time_multiplier = Column(Numeric(6, 3), nullable=False)
    subtotal = Column(BigInteger, nullable=False)
    total_price = Column(BigInteger, nullable=False)
    current_price = Column(BigInteger, nullable=False)
    price_breakdown = Column(JSON, nullable=False)

    notes = Column(Text, nullable=True)
    status = Column(
        Enum(QuotationStatus, native_enum=False, length=20),
        default=QuotationStatus.PENDING,
        nullable=False,
    )
    expires_at = Column(DateTime(timezone=True), nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    accepted_by = Column(Integer, nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(String(255), nullable=True)
    counter_offer_count = Column(Integer, nullable=False, default=0)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
