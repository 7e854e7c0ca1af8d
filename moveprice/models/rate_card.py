from sqlalchemy import BigInteger, Column, DateTime, Integer, Numeric, String, Index
from moveprice.models.base import BaseModel


class VehicleRateCard(BaseModel):
    """Per-transport vehicle rates. Rows are versioned by effective range, never edited in place."""
    __tablename__ = "vehicle_rate_cards"
    __table_args__ = (
        Index("ix_vehicle_rate_cards_transport_effective", "transport_id", "effective_from"),
    )

    transport_id = Column(Integer, nullable=False, index=True)
    vehicle_type = Column(String(40), nullable=True)

    base_price = Column(BigInteger, nullable=False)
    per_km_first_4km = Column(BigInteger, nullable=False)
    per_km_5_to_40km = Column(BigInteger, nullable=False)
    per_km_after_40km = Column(BigInteger, nullable=False)

    peak_hour_multiplier = Column(Numeric(6, 3), nullable=False, default=1)
    weekend_multiplier = Column(Numeric(6, 3), nullable=False, default=1)
    holiday_multiplier = Column(Numeric(6, 3), nullable=False, default=1)

    no_elevator_fee = Column(BigInteger, nullable=False, default=0)

    effective_from = Column(DateTime(timezone=True), nullable=False)
    effective_to = Column(DateTime(timezone=True), nullable=True)


class CategoryRate(BaseModel):
    __tablename__ = "category_rates"
    __table_args__ = (
        Index("ix_category_rates_transport_category", "transport_id", "category_id", "effective_from"),
    )

    transport_id = Column(Integer, nullable=False)
    category_id = Column(Integer, nullable=False)

    price_per_unit = Column(BigInteger, nullable=False)
    fragile_multiplier = Column(Numeric(6, 3), nullable=True)
    disassembly_multiplier = Column(Numeric(6, 3), nullable=True)
    heavy_multiplier = Column(Numeric(6, 3), nullable=True)

    effective_from = Column(DateTime(timezone=True), nullable=False)
    effective_to = Column(DateTime(timezone=True), nullable=True)
