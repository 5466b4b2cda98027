import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stampcard.clients.user_service import CounterSync
from stampcard.config import settings
from stampcard.db import utcnow
from stampcard.models.coupon import Coupon
from stampcard.services.business_service import require_business
from stampcard.services.coupon_service import count_active, create_coupon, generate_coupon_code
from stampcard.services.ledger_service import add_stamps, count_valid_stamps, lock_stamp_card
from stampcard.services.prize_service import progression_sequence
from stampcard.services.progression import plan_next_coupon, progression_stages


logger = logging.getLogger(__name__)

# identifiers produced by upstream serialization bugs
INVALID_USER_IDS = {"NaN", "undefined", "null"}


@dataclass
class ApplyResult:
    valid_stamps: int
    created_coupon: Optional[Coupon]
    adjusted_valid_stamps: int
    valid_coupons: int


def validate_apply_input(user_id: str, business_id: str, stamps: int) -> None:
    if user_id is None or not str(user_id).strip() or str(user_id).strip() in INVALID_USER_IDS:
        raise HTTPException(status_code=400, detail="Invalid userId")
    if business_id is None or not str(business_id).strip():
        raise HTTPException(status_code=400, detail="Invalid businessId")
    if isinstance(stamps, bool) or not isinstance(stamps, int):
        raise HTTPException(status_code=400, detail="stamps must be an integer")
    if stamps < 1 or stamps > settings.max_stamps_per_apply:
        raise HTTPException(
            status_code=400,
            detail=f"stamps must be between 1 and {settings.max_stamps_per_apply}",
        )


def issued_stage_history(db: Session, user_id: str, business_id: str, sequence: list) -> list[int]:
    """Stage index of every coupon issued for a prize of the sequence, oldest first.

    Prizes sharing a threshold share a stage, so a coupon for any of them
    counts as that stage being reached.
    """
    stage_by_points = {int(prize.points_required): index for index, prize in enumerate(progression_stages(sequence))}
    stage_by_prize = {prize.id: stage_by_points[int(prize.points_required)] for prize in sequence}
    if not stage_by_prize:
        return []

    coupons = (
        db.query(Coupon)
        .filter(
            Coupon.user_id == user_id,
            Coupon.business_id == business_id,
            Coupon.prize_id.in_(list(stage_by_prize)),
        )
        .all()
    )
    # equal timestamps fall back to threshold order
    coupons.sort(key=lambda c: (c.created_at, stage_by_prize[c.prize_id]))
    return [stage_by_prize[c.prize_id] for c in coupons]


def apply_stamps(
    db: Session,
    user_id: str,
    business_id: str,
    stamps: int,
    *,
    counter_sync: CounterSync | None = None,
    now: datetime | None = None,
) -> ApplyResult:
    """
    Grants ``stamps`` to the membership and issues at most one coupon.

    Ledger writes and coupon issuance commit together with the membership row
    locked; the user-service push happens after the commit and cannot undo it.
    Not idempotent: a retried call grants the stamps again.
    """
    validate_apply_input(user_id, business_id, stamps)
    user_id = user_id.strip()
    business_id = business_id.strip()
    now = now or utcnow()

    require_business(db, business_id)

    try:
        card = lock_stamp_card(db, user_id, business_id)

        add_stamps(db, user_id, business_id, stamps, now=now)
        card.last_stamp_at = now

        valid_stamps = count_valid_stamps(db, user_id, business_id)

        sequence = progression_sequence(db, business_id)
        history = issued_stage_history(db, user_id, business_id, sequence)
        plan = plan_next_coupon(sequence, history, valid_stamps)

        created_coupon = None
        if plan.issue:
            prize = progression_stages(sequence)[plan.target_stage]
            created_coupon = create_coupon(
                db,
                user_id,
                business_id,
                prize.id,
                generate_coupon_code(),
                now=now,
            )

        valid_coupons = count_active(db, user_id, business_id, as_of=now)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "stamp apply aborted",
            extra={"user_id": user_id, "business_id": business_id, "stamps": stamps},
        )
        raise

    logger.info(
        "stamps applied",
        extra={
            "user_id": user_id,
            "business_id": business_id,
            "stamps": stamps,
            "valid_stamps": valid_stamps,
            "coupon_id": str(created_coupon.id) if created_coupon else None,
        },
    )

    if counter_sync is not None:
        counter_sync.sync_counters(
            user_id,
            business_id,
            valid_stamps=plan.adjusted_valid_stamps,
            valid_coupons=valid_coupons,
            total_stamps_delta=stamps,
            total_coupons_delta=1 if created_coupon else 0,
        )

    return ApplyResult(
        valid_stamps=valid_stamps,
        created_coupon=created_coupon,
        adjusted_valid_stamps=plan.adjusted_valid_stamps,
        valid_coupons=valid_coupons,
    )
