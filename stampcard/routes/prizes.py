from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from stampcard.db import get_db
from stampcard.schemas.prize import PrizeCreate, PrizeListOut, PrizeOut, ProgressionOut
from stampcard.services.business_service import require_business
from stampcard.services.ledger_service import count_valid_stamps
from stampcard.services.prize_service import create_prize, list_prizes, progression_for_business


router = APIRouter(prefix="/api/v1/prizes", tags=["prizes"])


@router.get("", response_model=PrizeListOut)
def list_business_prizes(businessId: str, db: Session = Depends(get_db)):
    require_business(db, businessId)
    return PrizeListOut(prizes=[PrizeOut.from_prize(p) for p in list_prizes(db, businessId)])


@router.post("", response_model=PrizeOut)
def create(payload: PrizeCreate, db: Session = Depends(get_db)):
    prize = create_prize(
        db,
        name=payload.name,
        points_required=payload.pointsRequired,
        is_promotional=payload.isPromotional,
        business_id=payload.businessId,
        brand_id=payload.brandId,
    )
    db.commit()
    db.refresh(prize)
    return PrizeOut.from_prize(prize)


# Last and next prize thresholds for a stamp count. Either pass the count
# directly or a userId to read it from the ledger.
@router.get("/progression", response_model=ProgressionOut)
def progression(
    businessId: str,
    stamps: int | None = Query(default=None, ge=0),
    userId: str | None = None,
    db: Session = Depends(get_db),
):
    require_business(db, businessId)

    if stamps is None:
        if not userId:
            raise HTTPException(status_code=400, detail="stamps or userId required")
        stamps = count_valid_stamps(db, userId, businessId)

    return ProgressionOut(**progression_for_business(db, businessId, stamps).as_dict())
