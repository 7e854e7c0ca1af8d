from sqlalchemy import BigInteger, Column, DateTime, Integer
from moveprice.models.base import BaseModel


class Booking(BaseModel):
    """Booking owned by the marketplace; only the binding columns are written here."""
    __tablename__ = "bookings"

    customer_id = Column(Integer, nullable=False, index=True)

    bound_transport_id = Column(Integer, nullable=True)
    bound_quotation_id = Column(Integer, nullable=True)
    bound_price = Column(BigInteger, nullable=True)
    bound_at = Column(DateTime(timezone=True), nullable=True)
    quotation_count = Column(Integer, nullable=False, default=0)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_bound(self) -> bool:
        return self.bound_at is not None
