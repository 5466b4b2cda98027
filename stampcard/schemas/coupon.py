from datetime import datetime
from typing import Optional

from uuid import UUID

from pydantic import BaseModel, Field


class CouponCreate(BaseModel):
    userId: str = Field(min_length=1)
    businessId: str = Field(min_length=1)
    prizeId: UUID
    code: str = Field(min_length=1)
    expiredAt: Optional[datetime] = None


class CouponPrizeOut(BaseModel):
    id: UUID
    name: str
    pointsRequired: int


class CouponOut(BaseModel):
    id: UUID
    userId: str
    businessId: str
    prizeId: UUID
    code: str
    qrCode: str

    isRedeemed: bool

    createdAt: Optional[datetime] = None
    expiredAt: Optional[datetime] = None
    redeemedAt: Optional[datetime] = None

    prize: Optional[CouponPrizeOut] = None

    @classmethod
    def from_coupon(cls, coupon) -> "CouponOut":
        prize = None
        if coupon.prize is not None:
            prize = CouponPrizeOut(
                id=coupon.prize.id,
                name=coupon.prize.name,
                pointsRequired=coupon.prize.points_required,
            )
        return cls(
            id=coupon.id,
            userId=coupon.user_id,
            businessId=coupon.business_id,
            prizeId=coupon.prize_id,
            code=coupon.code,
            qrCode=coupon.code,
            isRedeemed=bool(coupon.is_redeemed),
            createdAt=coupon.created_at,
            expiredAt=coupon.expired_at,
            redeemedAt=coupon.redeemed_at,
            prize=prize,
        )


class CouponEnvelope(BaseModel):
    coupon: CouponOut


class CouponListOut(BaseModel):
    coupons: list[CouponOut]
