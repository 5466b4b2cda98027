import uuid
from sqlalchemy import Boolean, Column, ForeignKey, Index, String, TIMESTAMP, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from stampcard.db import Base, utcnow


class Coupon(Base):
    __tablename__ = "coupons"

    __table_args__ = (
        UniqueConstraint("business_id", "code", name="uq_coupons_business_id_code"),
        Index("ix_coupons_user_business", "user_id", "business_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    user_id = Column(String(100), nullable=False)
    business_id = Column(String(64), ForeignKey("businesses.id"), nullable=False)
    prize_id = Column(UUID(as_uuid=True), ForeignKey("prizes.id"), nullable=False)

    code = Column(String(100), nullable=False)

    is_redeemed = Column(Boolean, nullable=False, default=False)

    created_at = Column(TIMESTAMP, default=utcnow)
    expired_at = Column(TIMESTAMP, nullable=True)
    redeemed_at = Column(TIMESTAMP, nullable=True)

    prize = relationship("Prize", lazy="joined", innerjoin=True)
