from datetime import datetime

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stampcard.db import utcnow
from stampcard.models.stamp import Stamp
from stampcard.models.stamp_card import StampCard


def _card_query(db: Session, user_id: str, business_id: str):
    return db.query(StampCard).filter(
        StampCard.user_id == user_id,
        StampCard.business_id == business_id,
    )


def lock_stamp_card(db: Session, user_id: str, business_id: str) -> StampCard:
    """
    Row lock on the membership, held until the surrounding transaction ends.

    Must be the first write of the transaction: a lost insert race rolls the
    session back before re-reading the winner's row.
    """
    card = _card_query(db, user_id, business_id).with_for_update().first()
    if card:
        return card

    card = StampCard(user_id=user_id, business_id=business_id)
    db.add(card)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        card = _card_query(db, user_id, business_id).with_for_update().one()
    return card


def add_stamps(db: Session, user_id: str, business_id: str, count: int, *, now: datetime | None = None) -> list[Stamp]:
    now = now or utcnow()
    # one row per stamp so each unit stays auditable on its own
    stamps = [Stamp(user_id=user_id, business_id=business_id, created_at=now) for _ in range(int(count))]
    db.add_all(stamps)
    db.flush()
    return stamps


def add_stamp(db: Session, user_id: str, business_id: str) -> Stamp:
    now = utcnow()
    card = lock_stamp_card(db, user_id, business_id)
    card.last_stamp_at = now
    return add_stamps(db, user_id, business_id, 1, now=now)[0]


def redeem_stamp(db: Session, stamp_id) -> Stamp:
    stamp = db.query(Stamp).filter(Stamp.id == stamp_id).first()
    if not stamp:
        raise HTTPException(status_code=404, detail="Stamp not found")
    stamp.is_redeemed = True
    db.flush()
    return stamp


def count_valid_stamps(db: Session, user_id: str, business_id: str) -> int:
    count = (
        db.query(func.count(Stamp.id))
        .filter(
            Stamp.user_id == user_id,
            Stamp.business_id == business_id,
            Stamp.is_redeemed.is_(False),
        )
        .scalar()
    )
    return int(count or 0)
