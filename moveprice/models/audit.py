from sqlalchemy import Column, String, Integer
from moveprice.models.base import BaseModel

class Audit(BaseModel):
    __tablename__ = "audits"

    actor_id = Column(Integer, nullable=True, index=True)
    actor_role = Column(String(20), nullable=True)

    endpoint = Column(String(255), nullable=False)
    payload_hash = Column(String(128), nullable=False)
