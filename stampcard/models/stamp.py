import uuid
from sqlalchemy import Boolean, Column, ForeignKey, Index, String, TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID
from stampcard.db import Base, utcnow


class Stamp(Base):
    __tablename__ = "stamps"

    __table_args__ = (Index("ix_stamps_user_business", "user_id", "business_id"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    user_id = Column(String(100), nullable=False)
    business_id = Column(String(64), ForeignKey("businesses.id"), nullable=False)

    # only the legacy single-stamp redeem path sets this
    is_redeemed = Column(Boolean, nullable=False, default=False)

    created_at = Column(TIMESTAMP, default=utcnow)
