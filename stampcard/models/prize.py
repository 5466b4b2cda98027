import uuid
from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, String, TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID
from stampcard.db import Base, utcnow


class Prize(Base):
    __tablename__ = "prizes"

    __table_args__ = (
        CheckConstraint("points_required > 0", name="ck_prizes_points_required_positive"),
        CheckConstraint(
            "business_id IS NULL OR brand_id IS NULL",
            name="ck_prizes_single_scope",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    name = Column(String(100), nullable=False)
    points_required = Column(Integer, nullable=False)

    # promotional prizes stay out of the stamp progression unless nothing else exists
    is_promotional = Column(Boolean, nullable=False, default=False)

    business_id = Column(String(64), ForeignKey("businesses.id"), nullable=True, index=True)
    brand_id = Column(UUID(as_uuid=True), ForeignKey("brands.id"), nullable=True)

    created_at = Column(TIMESTAMP, default=utcnow)
