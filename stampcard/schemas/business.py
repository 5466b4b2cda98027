from datetime import datetime
from typing import Optional

from uuid import UUID

from pydantic import BaseModel


class BusinessProvision(BaseModel):
    id: Optional[str] = None
    brandId: Optional[UUID] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class BusinessOut(BaseModel):
    id: str
    brandId: UUID
    name: str
    email: str
    phone: str
    address: str
    createdAt: Optional[datetime] = None

    @classmethod
    def from_business(cls, business) -> "BusinessOut":
        return cls(
            id=business.id,
            brandId=business.brand_id,
            name=business.name,
            email=business.email,
            phone=business.phone,
            address=business.address,
            createdAt=business.created_at,
        )


class CapacityOut(BaseModel):
    email: int
    sms: int
    push: int
