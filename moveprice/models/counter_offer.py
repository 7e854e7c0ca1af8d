from sqlalchemy import BigInteger, Column, DateTime, Enum, ForeignKey, Index, Integer, String, Text, text
from moveprice.models.base import BaseModel
from moveprice.core.enums import CounterOfferStatus


class CounterOffer(BaseModel):
    __tablename__ = "counter_offers"
    __table_args__ = (
        Index(
            "uq_counter_offers_one_pending",
            "quotation_id",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )

    quotation_id = Column(ForeignKey("quotations.id"), nullable=False, index=True)

    original_price = Column(BigInteger, nullable=False)
    offered_price = Column(BigInteger, nullable=False)
    reason = Column(String(255), nullable=True)
    message = Column(Text, nullable=True)

    status = Column(
        Enum(CounterOfferStatus, native_enum=False, length=20),
        default=CounterOfferStatus.PENDING,
        nullable=False,
    )
    offered_by = Column(Integer, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    responded_at = Column(DateTime(timezone=True), nullable=True)
    responded_by = Column(Integer, nullable=True)
    response_message = Column(Text, nullable=True)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
