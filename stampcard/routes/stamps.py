from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stampcard.clients.user_service import CounterSync
from stampcard.db import get_db
from stampcard.deps.counter_sync import get_counter_sync
from stampcard.schemas.stamp import (
    CreatedCouponOut,
    StampApplyData,
    StampApplyIn,
    StampApplyOut,
    StampCountOut,
    StampCreate,
    StampEnvelope,
    StampOut,
)
from stampcard.services.business_service import require_business
from stampcard.services.ledger_service import add_stamp, count_valid_stamps, redeem_stamp
from stampcard.services.stamp_service import apply_stamps


router = APIRouter(prefix="/api/v1/stamps", tags=["stamps"])


@router.post("/apply", response_model=StampApplyOut)
def apply(
    payload: StampApplyIn,
    db: Session = Depends(get_db),
    counter_sync: CounterSync = Depends(get_counter_sync),
):
    result = apply_stamps(
        db,
        payload.userId,
        payload.businessId,
        payload.stamps,
        counter_sync=counter_sync,
    )

    created = None
    if result.created_coupon is not None:
        created = CreatedCouponOut(id=result.created_coupon.id, code=result.created_coupon.code)

    return StampApplyOut(
        message="Stamps applied",
        data=StampApplyData(validStamps=result.valid_stamps, createdCoupon=created),
    )


# ------------------------------------------------------------
# single-stamp endpoints kept for older clients; no progression
# ------------------------------------------------------------
@router.post("", response_model=StampEnvelope)
def create_stamp(payload: StampCreate, db: Session = Depends(get_db)):
    require_business(db, payload.businessId)
    stamp = add_stamp(db, payload.userId, payload.businessId)
    db.commit()
    db.refresh(stamp)
    return StampEnvelope(stamp=StampOut.from_stamp(stamp))


@router.patch("/{stamp_id}/redeem", response_model=StampEnvelope)
def redeem(stamp_id: UUID, db: Session = Depends(get_db)):
    stamp = redeem_stamp(db, stamp_id)
    db.commit()
    db.refresh(stamp)
    return StampEnvelope(stamp=StampOut.from_stamp(stamp))


@router.get("/count", response_model=StampCountOut)
def count(userId: str, businessId: str, db: Session = Depends(get_db)):
    return StampCountOut(count=count_valid_stamps(db, userId, businessId))
