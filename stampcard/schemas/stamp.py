from datetime import datetime
from typing import Optional

from uuid import UUID

from pydantic import BaseModel, Field


class StampApplyIn(BaseModel):
    userId: str = Field(min_length=1)
    businessId: str = Field(min_length=1)
    # range is enforced by the engine so the limit stays configurable
    stamps: int


class CreatedCouponOut(BaseModel):
    id: UUID
    code: str


class StampApplyData(BaseModel):
    validStamps: int
    createdCoupon: Optional[CreatedCouponOut] = None


class StampApplyOut(BaseModel):
    message: str
    data: StampApplyData


class StampCreate(BaseModel):
    userId: str = Field(min_length=1)
    businessId: str = Field(min_length=1)


class StampOut(BaseModel):
    id: UUID
    userId: str
    businessId: str
    isRedeemed: bool
    createdAt: Optional[datetime] = None

    @classmethod
    def from_stamp(cls, stamp) -> "StampOut":
        return cls(
            id=stamp.id,
            userId=stamp.user_id,
            businessId=stamp.business_id,
            isRedeemed=bool(stamp.is_redeemed),
            createdAt=stamp.created_at,
        )


class StampEnvelope(BaseModel):
    stamp: StampOut


class StampCountOut(BaseModel):
    count: int
