import uuid
from datetime import datetime, timedelta

from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stampcard.config import settings
from stampcard.db import to_naive_utc, utcnow
from stampcard.models.coupon import Coupon


def generate_coupon_code() -> str:
    return str(uuid.uuid4())


# ============================================================
# CREATE
# ============================================================
def create_coupon(
    db: Session,
    user_id: str,
    business_id: str,
    prize_id,
    code: str,
    expired_at: datetime | None = None,
    *,
    now: datetime | None = None,
) -> Coupon:
    code = (code or "").strip()
    if not code:
        raise HTTPException(status_code=400, detail="code required")

    now = to_naive_utc(now) or utcnow()
    if expired_at is None:
        expired_at = now + timedelta(days=settings.coupon_validity_days)
    else:
        expired_at = to_naive_utc(expired_at)

    coupon = Coupon(
        user_id=user_id,
        business_id=business_id,
        prize_id=prize_id,
        code=code,
        is_redeemed=False,
        created_at=now,
        expired_at=expired_at,
    )
    db.add(coupon)

    # codes are unique per business; the constraint is the check
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Coupon code already exists for this business")

    return coupon


# ============================================================
# LOOKUP
# ============================================================
def find_by_code(db: Session, code: str, business_id: str) -> Coupon:
    code = (code or "").strip()
    if not code:
        raise HTTPException(status_code=400, detail="code required")

    coupon = (
        db.query(Coupon)
        .filter(Coupon.code == code, Coupon.business_id == business_id)
        .first()
    )
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return coupon


def list_coupons(db: Session, user_id: str, business_id: str) -> list[Coupon]:
    return (
        db.query(Coupon)
        .filter(Coupon.user_id == user_id, Coupon.business_id == business_id)
        .order_by(Coupon.created_at.asc())
        .all()
    )


def _active_filter(query, as_of: datetime):
    return query.filter(
        Coupon.is_redeemed.is_(False),
        or_(Coupon.expired_at.is_(None), Coupon.expired_at > as_of),
    )


def list_active(db: Session, user_id: str, business_id: str, as_of: datetime | None = None) -> list[Coupon]:
    as_of = to_naive_utc(as_of) or utcnow()
    q = db.query(Coupon).filter(Coupon.user_id == user_id, Coupon.business_id == business_id)
    return _active_filter(q, as_of).order_by(Coupon.created_at.asc()).all()


def count_active(db: Session, user_id: str, business_id: str, as_of: datetime | None = None) -> int:
    as_of = to_naive_utc(as_of) or utcnow()
    q = db.query(func.count(Coupon.id)).filter(Coupon.user_id == user_id, Coupon.business_id == business_id)
    return int(_active_filter(q, as_of).scalar() or 0)


# ============================================================
# REDEEM (Active -> Redeemed, one way)
# ============================================================
def redeem_coupon(db: Session, coupon_id, *, now: datetime | None = None) -> Coupon:
    now = to_naive_utc(now) or utcnow()

    coupon = db.query(Coupon).filter(Coupon.id == coupon_id).with_for_update(of=Coupon).first()
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")

    if coupon.is_redeemed:
        raise HTTPException(status_code=409, detail="Coupon already redeemed")

    if coupon.expired_at is not None and coupon.expired_at <= now:
        raise HTTPException(status_code=409, detail="Coupon expired")

    coupon.is_redeemed = True
    coupon.redeemed_at = now

    db.flush()
    return coupon
