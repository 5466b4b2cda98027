from sqlalchemy import Column, ForeignKey, Integer, String, TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from stampcard.db import Base


class Business(Base):
    __tablename__ = "businesses"

    # ids are assigned by the platform and referenced by the user-service
    id = Column(String(64), primary_key=True)

    brand_id = Column(UUID(as_uuid=True), ForeignKey("brands.id"), nullable=False)

    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(30), nullable=False)
    address = Column(String(255), nullable=False, default="N/A")

    # messaging capacity, owned by campaign delivery
    total_sms = Column(Integer, nullable=False, default=0)
    total_email = Column(Integer, nullable=False, default=0)
    total_push = Column(Integer, nullable=False, default=0)
    available_sms = Column(Integer, nullable=False, default=0)
    available_email = Column(Integer, nullable=False, default=0)
    available_push = Column(Integer, nullable=False, default=0)

    created_at = Column(TIMESTAMP, server_default=func.now())
