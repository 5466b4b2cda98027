from fastapi import HTTPException
from sqlalchemy.orm import Session

from stampcard.config import settings
from stampcard.models.brand import Brand
from stampcard.models.prize import Prize
from stampcard.services.business_service import require_business
from stampcard.services.progression import (
    Progression,
    build_progression_sequence,
    compute_progression,
)


def list_prizes(db: Session, business_id: str):
    return (
        db.query(Prize)
        .filter(Prize.business_id == business_id)
        .order_by(Prize.points_required.asc(), Prize.created_at.asc())
        .all()
    )


def progression_sequence(db: Session, business_id: str) -> list:
    return build_progression_sequence(list_prizes(db, business_id))


def progression_for_business(db: Session, business_id: str, stamps: int) -> Progression:
    return compute_progression(stamps, progression_sequence(db, business_id), settings.default_cycle_size)


def create_prize(
    db: Session,
    *,
    name: str,
    points_required: int,
    is_promotional: bool = False,
    business_id: str | None = None,
    brand_id=None,
) -> Prize:
    if (business_id is None) == (brand_id is None):
        raise HTTPException(status_code=400, detail="Exactly one of businessId or brandId is required")
    if points_required is None or int(points_required) <= 0:
        raise HTTPException(status_code=400, detail="pointsRequired must be greater than 0")

    if business_id is not None:
        require_business(db, business_id)
    elif not db.query(Brand.id).filter(Brand.id == brand_id).first():
        raise HTTPException(status_code=404, detail="Brand not found")

    prize = Prize(
        name=name,
        points_required=int(points_required),
        is_promotional=bool(is_promotional),
        business_id=business_id,
        brand_id=brand_id,
    )
    db.add(prize)
    db.flush()
    return prize
