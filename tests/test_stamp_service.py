import dataclasses
import logging
from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException
from sqlalchemy import false, func
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from stampcard.clients.user_service import CounterSync
from stampcard.config import settings
from stampcard.models.coupon import Coupon
from stampcard.models.stamp import Stamp
from stampcard.models.stamp_card import StampCard
from stampcard.services import ledger_service, stamp_service
from stampcard.services.coupon_service import create_coupon
from stampcard.services.ledger_service import add_stamp, count_valid_stamps, lock_stamp_card, redeem_stamp
from stampcard.services.stamp_service import apply_stamps


USER = "7f3c2a10-0b1e-4c55-9d7e-2f4b8a6e1c01"


def _stamp_rows(db, user_id=USER):
    return db.query(func.count(Stamp.id)).filter(Stamp.user_id == user_id).scalar()


@pytest.fixture
def three_prizes(business, make_prize):
    return [
        make_prize(business.id, "Soft drink", 5),
        make_prize(business.id, "Tiramisu", 10),
        make_prize(business.id, "Family pizza", 20),
    ]


@pytest.mark.parametrize("bad_user", ["NaN", "undefined", "null", "  null ", ""])
def test_sentinel_user_ids_are_rejected_before_any_write(db, business, bad_user):
    with pytest.raises(HTTPException) as exc:
        apply_stamps(db, bad_user, business.id, 3)

    assert exc.value.status_code == 400
    assert db.query(func.count(Stamp.id)).scalar() == 0
    assert db.query(func.count(StampCard.id)).scalar() == 0


@pytest.mark.parametrize("stamps", [0, -1, 201])
def test_stamp_count_outside_range_is_rejected(db, business, stamps):
    with pytest.raises(HTTPException) as exc:
        apply_stamps(db, USER, business.id, stamps)

    assert exc.value.status_code == 400
    assert _stamp_rows(db) == 0


def test_unknown_business_is_not_found(db):
    with pytest.raises(HTTPException) as exc:
        apply_stamps(db, USER, "no-such-business", 2)

    assert exc.value.status_code == 404
    assert _stamp_rows(db) == 0


def test_each_stamp_is_its_own_ledger_row(db, business, three_prizes):
    result = apply_stamps(db, USER, business.id, 3)

    assert result.valid_stamps == 3
    assert result.created_coupon is None
    assert _stamp_rows(db) == 3

    card = db.query(StampCard).filter(StampCard.user_id == USER).one()
    assert card.last_stamp_at is not None


def test_large_batch_issues_a_single_coupon(db, business, three_prizes, monkeypatch):
    monkeypatch.setattr(stamp_service, "settings", dataclasses.replace(settings, max_stamps_per_apply=1000))

    result = apply_stamps(db, USER, business.id, 1000)

    assert result.valid_stamps == 1000
    assert result.created_coupon is not None
    assert result.created_coupon.prize_id == three_prizes[0].id
    assert db.query(func.count(Coupon.id)).scalar() == 1
    assert result.adjusted_valid_stamps == 995


def test_progression_advances_one_stage_per_threshold(db, business, three_prizes):
    start = datetime(2026, 10, 1, 12, 0, 0)
    issued = []
    for step in range(5):
        result = apply_stamps(db, USER, business.id, 5, now=start + timedelta(minutes=step))
        issued.append(result.created_coupon.prize.name if result.created_coupon else None)

    # 5, 10, 15, 20, 25 stamps
    assert issued == ["Soft drink", "Tiramisu", None, "Family pizza", "Soft drink"]
    assert count_valid_stamps(db, USER, business.id) == 25


def test_adjusted_stamps_remove_what_prizes_already_consumed(db, business, three_prizes):
    start = datetime(2026, 10, 1, 12, 0, 0)

    first = apply_stamps(db, USER, business.id, 5, now=start)
    assert first.adjusted_valid_stamps == 0

    second = apply_stamps(db, USER, business.id, 3, now=start + timedelta(minutes=1))
    assert second.created_coupon is None
    assert second.adjusted_valid_stamps == 3


def test_same_ledger_state_targets_same_stage(db, business, three_prizes):
    apply_stamps(db, USER, business.id, 7)

    sequence = stamp_service.progression_sequence(db, business.id)
    history = stamp_service.issued_stage_history(db, USER, business.id, sequence)
    valid = count_valid_stamps(db, USER, business.id)

    first = stamp_service.plan_next_coupon(sequence, history, valid)
    second = stamp_service.plan_next_coupon(sequence, history, valid)

    assert first == second
    assert first.next_threshold == 10
    assert first.issue is False


def test_promotional_prizes_stay_out_of_progression(db, business, make_prize):
    make_prize(business.id, "Opening night", 3, promotional=True)
    calzone = make_prize(business.id, "Calzone", 8)

    first = apply_stamps(db, USER, business.id, 5)
    second = apply_stamps(db, USER, business.id, 5)

    assert first.created_coupon is None
    assert second.created_coupon.prize_id == calzone.id


def test_no_prizes_means_no_coupons(db, business):
    result = apply_stamps(db, USER, business.id, 40)

    assert result.created_coupon is None
    assert result.adjusted_valid_stamps == 40


def test_legacy_redeemed_stamps_do_not_count(db, business):
    stamp = add_stamp(db, USER, business.id)
    add_stamp(db, USER, business.id)
    db.commit()

    redeem_stamp(db, stamp.id)
    db.commit()

    assert count_valid_stamps(db, USER, business.id) == 1
    assert _stamp_rows(db) == 2


def test_stamp_card_is_reused(db, business):
    first = lock_stamp_card(db, USER, business.id)
    db.commit()
    second = lock_stamp_card(db, USER, business.id)

    assert first.id == second.id


def test_sync_receives_adjusted_counters(db, business, make_prize, counter_sync, user_service):
    make_prize(business.id, "Garlic bread", 5)

    result = apply_stamps(db, USER, business.id, 6, counter_sync=counter_sync)

    assert result.valid_coupons == 1

    assert user_service.counter_payloads == [
        {
            "businessId": business.id,
            "validStamps": 1,
            "validCoupons": 1,
            "totalStampsDelta": 6,
            "totalCouponsDelta": 1,
        }
    ]
    request = user_service.counter_requests[0]
    assert request.url.path == f"/internal/v1/users/{USER}/memberships/counters"
    assert request.headers["Authorization"] == "Bearer token-1"


def test_sync_failure_does_not_touch_the_ledger(
    db, session_factory, business, make_prize, counter_sync, user_service, caplog
):
    make_prize(business.id, "Garlic bread", 5)
    user_service.counter_status = 500

    with caplog.at_level(logging.ERROR, logger="stampcard.clients.user_service"):
        result = apply_stamps(db, USER, business.id, 5, counter_sync=counter_sync)

    assert result.valid_stamps == 5
    assert result.created_coupon is not None
    assert any("counter sync failed" in r.getMessage() for r in caplog.records)

    fresh = session_factory()
    try:
        assert count_valid_stamps(fresh, USER, business.id) == 5
        assert fresh.query(func.count(Coupon.id)).scalar() == 1
    finally:
        fresh.close()


def test_ledger_failure_aborts_before_sync(db, business, make_prize, counter_sync, user_service, monkeypatch):
    make_prize(business.id, "Garlic bread", 5)

    def broken(*args, **kwargs):
        raise OperationalError("INSERT INTO stamps", {}, Exception("database is locked"))

    monkeypatch.setattr(stamp_service, "add_stamps", broken)

    with pytest.raises(SQLAlchemyError):
        apply_stamps(db, USER, business.id, 5, counter_sync=counter_sync)

    assert user_service.counter_requests == []
    assert db.query(func.count(Coupon.id)).scalar() == 0


def test_disabled_sync_still_applies(db, business):
    result = apply_stamps(db, USER, business.id, 2, counter_sync=CounterSync(None))

    assert result.valid_stamps == 2


@pytest.fixture
def shared_threshold_prizes(db, business, make_prize):
    drink = make_prize(business.id, "Drink", 5)
    pizza = make_prize(business.id, "Pizza", 10)
    dessert = make_prize(business.id, "Dessert", 10)
    dessert.created_at = pizza.created_at + timedelta(seconds=1)
    db.commit()
    return drink, pizza, dessert


def test_prizes_sharing_a_threshold_keep_progression_moving(db, business, shared_threshold_prizes):
    start = datetime(2026, 10, 1, 12, 0, 0)
    issued = []
    for step in range(8):
        result = apply_stamps(db, USER, business.id, 5, now=start + timedelta(minutes=step))
        issued.append(result.created_coupon.prize.name if result.created_coupon else None)

    assert issued == ["Drink", "Pizza"] * 4
    assert count_valid_stamps(db, USER, business.id) == 40


def test_coupon_for_either_prize_at_a_threshold_reaches_that_stage(db, business, shared_threshold_prizes):
    _, _, dessert = shared_threshold_prizes
    start = datetime(2026, 10, 1, 12, 0, 0)

    apply_stamps(db, USER, business.id, 5, now=start)
    create_coupon(db, USER, business.id, dessert.id, "DESSERT-GIFT", now=start + timedelta(minutes=1))
    db.commit()

    assert apply_stamps(db, USER, business.id, 5, now=start + timedelta(minutes=2)).created_coupon is None

    third = apply_stamps(db, USER, business.id, 5, now=start + timedelta(minutes=3))
    assert third.created_coupon.prize.name == "Drink"


def test_legacy_stamp_survives_losing_the_card_insert_race(db, business, monkeypatch):
    lock_stamp_card(db, USER, business.id)
    db.commit()

    real_query = ledger_service._card_query
    lookups = []

    def racing_query(session, user_id, business_id):
        lookups.append(user_id)
        query = real_query(session, user_id, business_id)
        # the first lookup misses the card another request just committed
        return query.filter(false()) if len(lookups) == 1 else query

    monkeypatch.setattr(ledger_service, "_card_query", racing_query)

    stamp = add_stamp(db, USER, business.id)
    db.commit()

    assert stamp.user_id == USER
    assert db.query(func.count(StampCard.id)).scalar() == 1
    assert _stamp_rows(db) == 1
    assert len(lookups) == 2
