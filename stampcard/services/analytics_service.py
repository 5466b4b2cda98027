import math
from collections import defaultdict
from datetime import date, datetime, time, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from stampcard.db import utcnow
from stampcard.models.coupon import Coupon
from stampcard.models.stamp import Stamp
from stampcard.models.stamp_card import StampCard


def count_stamps_in_range(db: Session, business_id: str, start: datetime, end: datetime) -> int:
    return int(
        db.query(func.count(Stamp.id))
        .filter(Stamp.business_id == business_id, Stamp.created_at >= start, Stamp.created_at <= end)
        .scalar()
        or 0
    )


def count_redeemed_coupons_in_range(db: Session, business_id: str, start: datetime, end: datetime) -> int:
    return int(
        db.query(func.count(Coupon.id))
        .filter(
            Coupon.business_id == business_id,
            Coupon.is_redeemed.is_(True),
            Coupon.redeemed_at >= start,
            Coupon.redeemed_at <= end,
        )
        .scalar()
        or 0
    )


def count_total_coupons_redeemed(db: Session, business_id: str) -> int:
    return int(
        db.query(func.count(Coupon.id))
        .filter(Coupon.business_id == business_id, Coupon.is_redeemed.is_(True))
        .scalar()
        or 0
    )


def distinct_users(db: Session, business_id: str) -> int:
    stamp_users = {u for (u,) in db.query(Stamp.user_id).filter(Stamp.business_id == business_id).distinct()}
    coupon_users = {u for (u,) in db.query(Coupon.user_id).filter(Coupon.business_id == business_id).distinct()}
    return len(stamp_users | coupon_users)


def count_new_users_since(db: Session, business_id: str, since: datetime) -> int:
    return int(
        db.query(func.count(StampCard.id))
        .filter(StampCard.business_id == business_id, StampCard.created_at >= since)
        .scalar()
        or 0
    )


def business_summary(db: Session, business_id: str, days: int = 30, *, now: datetime | None = None) -> dict:
    now = now or utcnow()
    days = max(1, min(int(days), 365))
    since = now - timedelta(days=days)

    return {
        "businessId": business_id,
        "days": days,
        "stamps": count_stamps_in_range(db, business_id, since, now),
        "couponsRedeemed": count_redeemed_coupons_in_range(db, business_id, since, now),
        "totalCouponsRedeemed": count_total_coupons_redeemed(db, business_id),
        "users": distinct_users(db, business_id),
        "newUsers": count_new_users_since(db, business_id, since),
    }


# ============================================================
# OVERVIEW (week / month windows, visit behaviour)
# ============================================================
SESSION_GAP = timedelta(minutes=10)
RETURN_WINDOW = timedelta(days=30)


def _stamp_events(db: Session, business_id: str, start: datetime, end: datetime | None = None):
    q = db.query(Stamp.user_id, Stamp.created_at).filter(
        Stamp.business_id == business_id,
        Stamp.created_at >= start,
    )
    if end is not None:
        q = q.filter(Stamp.created_at < end)
    return q.order_by(Stamp.user_id, Stamp.created_at).all()


def _by_user(events) -> dict:
    grouped = defaultdict(list)
    for user_id, created_at in events:
        grouped[user_id].append(created_at)
    return grouped


def count_returning_users(db: Session, business_id: str, days: int = 30, *, now: datetime | None = None) -> int:
    """Users with a stamp in the window who had another stamp less than 30 days before it."""
    now = now or utcnow()
    since = now - timedelta(days=days)

    returning = 0
    for stamps in _by_user(_stamp_events(db, business_id, since - RETURN_WINDOW)).values():
        # a batch applied in one call shares the timestamp, so it is one purchase
        moments = sorted({ts.replace(microsecond=0) for ts in stamps})
        if any(
            current >= since and current - previous <= RETURN_WINDOW
            for previous, current in zip(moments, moments[1:])
        ):
            returning += 1
    return returning


def average_user_frequency(db: Session, business_id: str, days: int = 30, *, now: datetime | None = None) -> int:
    """Mean number of days between visits, over users seen on two or more days."""
    now = now or utcnow()

    per_user = []
    for stamps in _by_user(_stamp_events(db, business_id, now - timedelta(days=days))).values():
        visit_days = sorted({ts.date() for ts in stamps})
        if len(visit_days) < 2:
            continue
        gaps = [(b - a).days for a, b in zip(visit_days, visit_days[1:])]
        per_user.append(sum(gaps) / len(gaps))

    if not per_user:
        return 0
    return int(math.floor(sum(per_user) / len(per_user) + 0.5))


def count_members(db: Session, business_id: str) -> int:
    return int(db.query(func.count(StampCard.id)).filter(StampCard.business_id == business_id).scalar() or 0)


def business_overview(db: Session, business_id: str, *, now: datetime | None = None) -> dict:
    now = now or utcnow()
    week_start = now - timedelta(days=7)
    month_start = now - timedelta(days=30)

    return {
        "totalUsers": count_members(db, business_id),
        "returnacyRate": count_returning_users(db, business_id, 30, now=now),
        "totalCouponsRedeemed": count_total_coupons_redeemed(db, business_id),
        "weekTotalCouponsRedeemed": count_redeemed_coupons_in_range(db, business_id, week_start, now),
        "weekTotalStamps": count_stamps_in_range(db, business_id, week_start, now),
        "weekNewUsers": count_new_users_since(db, business_id, week_start),
        "monthTotalStamps": count_stamps_in_range(db, business_id, month_start, now),
        "monthTotalCouponsRedeemed": count_redeemed_coupons_in_range(db, business_id, month_start, now),
        "averageUserFrequency": average_user_frequency(db, business_id, 30, now=now),
    }


# ============================================================
# DAILY SERIES
# ============================================================
def _date_range(start: date, end: date) -> list[date]:
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def daily_transactions(db: Session, business_id: str, days: int = 30, *, now: datetime | None = None) -> dict:
    """
    Stamps and visit sessions per UTC day, oldest first, ending today.

    A session is a run of one user's stamps on one day with less than ten
    minutes between consecutive stamps.
    """
    now = now or utcnow()
    days = max(1, min(int(days), 90))

    today = now.date()
    dates = _date_range(today - timedelta(days=days - 1), today)
    start = datetime.combine(dates[0], time.min)
    end = datetime.combine(today + timedelta(days=1), time.min)

    stamps_per_day = defaultdict(int)
    sessions_per_day = defaultdict(int)
    for stamps in _by_user(_stamp_events(db, business_id, start, end)).values():
        previous = None
        for ts in sorted(stamps):
            stamps_per_day[ts.date()] += 1
            if previous is None or previous.date() != ts.date() or ts - previous >= SESSION_GAP:
                sessions_per_day[ts.date()] += 1
            previous = ts

    return {
        "dates": dates,
        "dailyTransactions": [sessions_per_day[d] for d in dates],
        "dailyStamps": [stamps_per_day[d] for d in dates],
    }
