from datetime import datetime
from typing import Optional

from uuid import UUID

from pydantic import BaseModel, Field


class PrizeCreate(BaseModel):
    name: str = Field(min_length=1)
    pointsRequired: int
    isPromotional: bool = False
    businessId: Optional[str] = None
    brandId: Optional[UUID] = None


class PrizeOut(BaseModel):
    id: UUID
    name: str
    pointsRequired: int
    isPromotional: bool
    businessId: Optional[str] = None
    brandId: Optional[UUID] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_prize(cls, prize) -> "PrizeOut":
        return cls(
            id=prize.id,
            name=prize.name,
            pointsRequired=prize.points_required,
            isPromotional=bool(prize.is_promotional),
            businessId=prize.business_id,
            brandId=prize.brand_id,
            createdAt=prize.created_at,
        )


class PrizeListOut(BaseModel):
    prizes: list[PrizeOut]


class ProgressionOut(BaseModel):
    stampsLastPrize: int
    stampsNextPrize: int
    lastPrizeName: Optional[str] = None
    nextPrizeName: Optional[str] = None
