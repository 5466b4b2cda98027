import logging
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from stampcard.clients.user_service import CounterSync
from stampcard.db import get_db
from stampcard.deps.counter_sync import get_counter_sync
from stampcard.models.prize import Prize
from stampcard.schemas.coupon import CouponCreate, CouponEnvelope, CouponListOut, CouponOut
from stampcard.services.business_service import require_business
from stampcard.services.coupon_service import (
    count_active,
    create_coupon,
    find_by_code,
    list_active,
    list_coupons,
    redeem_coupon,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/coupons", tags=["coupons"])


@router.post("", response_model=CouponEnvelope)
def create(payload: CouponCreate, db: Session = Depends(get_db)):
    business = require_business(db, payload.businessId)

    prize = db.query(Prize).filter(Prize.id == payload.prizeId).first()
    if not prize or (prize.business_id != business.id and prize.brand_id != business.brand_id):
        raise HTTPException(status_code=404, detail="Prize not found")

    coupon = create_coupon(
        db,
        payload.userId,
        business.id,
        prize.id,
        payload.code,
        payload.expiredAt,
    )
    db.commit()
    db.refresh(coupon)
    return CouponEnvelope(coupon=CouponOut.from_coupon(coupon))


@router.patch("/{coupon_id}/redeem", response_model=CouponEnvelope)
def redeem(
    coupon_id: UUID,
    db: Session = Depends(get_db),
    counter_sync: CounterSync = Depends(get_counter_sync),
):
    coupon = redeem_coupon(db, coupon_id)
    remaining = count_active(db, coupon.user_id, coupon.business_id, as_of=coupon.redeemed_at)
    db.commit()
    db.refresh(coupon)

    logger.info(
        "coupon redeemed",
        extra={"coupon_id": str(coupon.id), "user_id": coupon.user_id, "business_id": coupon.business_id},
    )
    counter_sync.sync_counters(coupon.user_id, coupon.business_id, valid_coupons=remaining)

    return CouponEnvelope(coupon=CouponOut.from_coupon(coupon))


@router.get("", response_model=CouponListOut)
def lookup(
    businessId: str | None = None,
    userId: str | None = None,
    code: str | None = None,
    active: bool = False,
    asOf: datetime | None = None,
    db: Session = Depends(get_db),
):
    if not businessId:
        raise HTTPException(status_code=400, detail="businessId required")

    if code is not None:
        coupon = find_by_code(db, code, businessId)
        return CouponListOut(coupons=[CouponOut.from_coupon(coupon)])

    if not userId:
        raise HTTPException(status_code=400, detail="userId required")

    if active:
        coupons = list_active(db, userId, businessId, as_of=asOf)
    else:
        coupons = list_coupons(db, userId, businessId)
    return CouponListOut(coupons=[CouponOut.from_coupon(c) for c in coupons])
