from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class MembersQuery(BaseModel):
    businessId: str = Field(min_length=1)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=200)
    minStamp: Optional[int] = Field(default=None, ge=0)
    hasCoupon: Optional[bool] = None
    # last stamp or coupon within this many days
    hasVisited: Optional[int] = Field(default=None, ge=1)
    sortBy: Literal["stamp", "coupon", "lastVisit"] = "lastVisit"
    sortOrder: Literal["asc", "desc"] = "desc"


class MemberOut(BaseModel):
    id: str
    totalStamps: int
    validStamps: int
    couponsCount: int
    totalCoupons: int
    lastVisit: Optional[datetime] = None
    stampsLastPrize: int
    stampsNextPrize: int
    lastPrizeName: Optional[str] = None
    nextPrizeName: Optional[str] = None


class MembersOut(BaseModel):
    message: str
    data: list[MemberOut]
