import uuid
from sqlalchemy import Column, ForeignKey, String, TIMESTAMP, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from stampcard.db import Base, utcnow


class StampCard(Base):
    """One row per (user, business) membership.

    Locked with SELECT ... FOR UPDATE while stamps are applied so that two
    concurrent applies for the same membership run one after the other.
    """

    __tablename__ = "stamp_cards"

    __table_args__ = (UniqueConstraint("user_id", "business_id", name="uq_stamp_cards_user_id_business_id"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    user_id = Column(String(100), nullable=False)
    business_id = Column(String(64), ForeignKey("businesses.id"), nullable=False)

    created_at = Column(TIMESTAMP, default=utcnow)
    last_stamp_at = Column(TIMESTAMP, nullable=True)
