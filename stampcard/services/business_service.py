import random
import uuid

from fastapi import HTTPException
from sqlalchemy.orm import Session

from stampcard.models.brand import Brand
from stampcard.models.business import Business


def get_business(db: Session, business_id: str):
    return db.query(Business).filter(Business.id == business_id).first()


def require_business(db: Session, business_id: str) -> Business:
    business = get_business(db, business_id)
    if not business:
        raise HTTPException(status_code=404, detail="Business not found")
    return business


def _placeholder_phone() -> str:
    return f"+{random.randint(10**9, 10**10 - 1)}"


def provision_business(
    db: Session,
    *,
    business_id: str | None = None,
    brand_id=None,
    name: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    address: str | None = None,
):
    """
    Creates the business (and a minimal brand when none is given) or returns
    the existing one. Returns ``(business, created)``.
    """
    business_id = (business_id or "").strip() or str(uuid.uuid4())

    existing = get_business(db, business_id)
    if existing:
        if brand_id is not None and existing.brand_id != brand_id:
            raise HTTPException(status_code=409, detail="Business already provisioned under another brand")
        return existing, False

    if brand_id is not None:
        brand = db.query(Brand).filter(Brand.id == brand_id).first()
        if not brand:
            raise HTTPException(status_code=404, detail="Brand not found")
    else:
        brand = Brand(
            name=f"Brand {business_id[:8]}",
            email=f"{business_id}@brand.local",
            phone=_placeholder_phone(),
            address="N/A",
        )
        db.add(brand)
        db.flush()

    business = Business(
        id=business_id,
        brand_id=brand.id,
        name=name or f"Business {business_id[:8]}",
        email=email or f"{business_id}@business.local",
        phone=phone or _placeholder_phone(),
        address=address or "N/A",
    )
    db.add(business)
    db.flush()

    return business, True


def get_capacity(business: Business) -> dict:
    return {
        "email": business.available_email,
        "sms": business.available_sms,
        "push": business.available_push,
    }
