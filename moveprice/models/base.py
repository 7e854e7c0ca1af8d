from sqlalchemy import Column, DateTime, Integer
from sqlalchemy.orm import declarative_base
from moveprice.utils.clock import utcnow

Base = declarative_base()


class BaseModel(Base):
    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Client-side defaults keep the values loaded after flush under AsyncSession.
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow, nullable=True)
