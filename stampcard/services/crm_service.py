from datetime import datetime, timedelta

from sqlalchemy import and_, case, func, or_
from sqlalchemy.orm import Session

from stampcard.config import settings
from stampcard.db import utcnow
from stampcard.models.coupon import Coupon
from stampcard.models.stamp import Stamp
from stampcard.models.stamp_card import StampCard
from stampcard.services.prize_service import progression_sequence
from stampcard.services.progression import compute_progression


def _member_stats_query(db: Session, business_id: str, now: datetime):
    """One row per membership with its stamp and coupon aggregates."""
    stamps = (
        db.query(
            Stamp.user_id.label("user_id"),
            func.count(Stamp.id).label("total"),
            func.sum(case((Stamp.is_redeemed.is_(False), 1), else_=0)).label("valid"),
            func.max(Stamp.created_at).label("last_at"),
        )
        .filter(Stamp.business_id == business_id)
        .group_by(Stamp.user_id)
        .subquery()
    )

    active = and_(
        Coupon.is_redeemed.is_(False),
        or_(Coupon.expired_at.is_(None), Coupon.expired_at > now),
    )
    coupons = (
        db.query(
            Coupon.user_id.label("user_id"),
            func.count(Coupon.id).label("total"),
            func.sum(case((active, 1), else_=0)).label("active"),
            func.max(Coupon.created_at).label("last_at"),
        )
        .filter(Coupon.business_id == business_id)
        .group_by(Coupon.user_id)
        .subquery()
    )

    total_stamps = func.coalesce(stamps.c.total, 0)
    valid_stamps = func.coalesce(stamps.c.valid, 0)
    coupons_count = func.coalesce(coupons.c.active, 0)
    total_coupons = func.coalesce(coupons.c.total, 0)
    last_visit = case(
        (coupons.c.last_at.is_(None), stamps.c.last_at),
        (stamps.c.last_at.is_(None), coupons.c.last_at),
        (coupons.c.last_at > stamps.c.last_at, coupons.c.last_at),
        else_=stamps.c.last_at,
    )

    query = (
        db.query(
            StampCard.user_id.label("id"),
            total_stamps.label("totalStamps"),
            valid_stamps.label("validStamps"),
            coupons_count.label("couponsCount"),
            total_coupons.label("totalCoupons"),
            last_visit.label("lastVisit"),
        )
        .outerjoin(stamps, stamps.c.user_id == StampCard.user_id)
        .outerjoin(coupons, coupons.c.user_id == StampCard.user_id)
        .filter(StampCard.business_id == business_id)
    )
    columns = {
        "stamp": valid_stamps,
        "coupon": coupons_count,
        "lastVisit": last_visit,
    }
    return query, columns


def list_members(
    db: Session,
    business_id: str,
    *,
    page: int = 1,
    limit: int = 20,
    min_stamp: int | None = None,
    has_coupon: bool | None = None,
    has_visited: int | None = None,
    sort_by: str = "lastVisit",
    sort_order: str = "desc",
    now: datetime | None = None,
) -> list[dict]:
    """
    Members of the business with their counters and progression.

    ``has_visited`` keeps members whose last stamp or coupon falls within
    that many days. Filtering, sorting and paging all run in SQL; members
    without a last visit sort after everyone else.
    """
    now = now or utcnow()

    query, columns = _member_stats_query(db, business_id, now)

    if min_stamp is not None:
        query = query.filter(columns["stamp"] >= min_stamp)
    if has_coupon:
        query = query.filter(columns["coupon"] > 0)
    if has_visited:
        query = query.filter(columns["lastVisit"] >= now - timedelta(days=has_visited))

    key = columns.get(sort_by, columns["lastVisit"])
    direction = key.desc() if sort_order == "desc" else key.asc()

    limit = max(1, min(limit, 200))
    page = max(1, page)

    rows = (
        query.order_by(key.is_(None), direction, StampCard.user_id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    # prizes are loaded once for the whole page
    sequence = progression_sequence(db, business_id)

    members = []
    for row in rows:
        stats = dict(row._mapping)
        for field in ("totalStamps", "validStamps", "couponsCount", "totalCoupons"):
            stats[field] = int(stats[field] or 0)
        progression = compute_progression(stats["validStamps"], sequence, settings.default_cycle_size)
        members.append({**stats, **progression.as_dict()})
    return members
