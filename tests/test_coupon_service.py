import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from stampcard.services.business_service import provision_business
from stampcard.services.coupon_service import (
    count_active,
    create_coupon,
    find_by_code,
    list_active,
    list_coupons,
    redeem_coupon,
)


USER = "c0ffee00-1111-4222-8333-444455556666"
NOW = datetime(2026, 10, 17, 18, 30, 0)


@pytest.fixture
def prize(business, make_prize):
    return make_prize(business.id, "Margherita", 10)


def test_default_expiry_is_thirty_days(db, business, prize):
    coupon = create_coupon(db, USER, business.id, prize.id, "PIZZA-001", now=NOW)
    db.commit()

    assert coupon.is_redeemed is False
    assert coupon.redeemed_at is None
    assert coupon.expired_at == NOW + timedelta(days=30)


def test_explicit_expiry_is_kept(db, business, prize):
    expiry = NOW + timedelta(days=3)
    coupon = create_coupon(db, USER, business.id, prize.id, "PIZZA-002", expiry, now=NOW)

    assert coupon.expired_at == expiry


def test_duplicate_code_in_same_business_conflicts(db, business, prize):
    create_coupon(db, USER, business.id, prize.id, "DUP")
    db.commit()

    with pytest.raises(HTTPException) as exc:
        create_coupon(db, "someone-else", business.id, prize.id, "DUP")

    assert exc.value.status_code == 409


def test_same_code_in_another_business_is_allowed(db, business, prize):
    other, _ = provision_business(db, business_id="pizzeria-two")
    db.commit()

    create_coupon(db, USER, business.id, prize.id, "SHARED")
    create_coupon(db, USER, other.id, prize.id, "SHARED")
    db.commit()

    assert find_by_code(db, "SHARED", other.id).business_id == "pizzeria-two"


def test_find_by_code(db, business, prize):
    created = create_coupon(db, USER, business.id, prize.id, "SCAN-ME")
    db.commit()

    found = find_by_code(db, "  SCAN-ME ", business.id)
    assert found.id == created.id
    assert found.prize.name == "Margherita"

    with pytest.raises(HTTPException) as missing:
        find_by_code(db, "NOPE", business.id)
    assert missing.value.status_code == 404

    with pytest.raises(HTTPException) as other_business:
        find_by_code(db, "SCAN-ME", "another-business")
    assert other_business.value.status_code == 404

    with pytest.raises(HTTPException) as blank:
        find_by_code(db, "   ", business.id)
    assert blank.value.status_code == 400


def test_redeem_is_one_way(db, business, prize):
    coupon = create_coupon(db, USER, business.id, prize.id, "ONCE", now=NOW)
    db.commit()

    redeemed = redeem_coupon(db, coupon.id, now=NOW + timedelta(hours=1))
    db.commit()

    assert redeemed.is_redeemed is True
    assert redeemed.redeemed_at == NOW + timedelta(hours=1)

    with pytest.raises(HTTPException) as exc:
        redeem_coupon(db, coupon.id, now=NOW + timedelta(hours=2))
    assert exc.value.status_code == 409
    assert exc.value.detail == "Coupon already redeemed"

    db.rollback()
    assert redeemed.redeemed_at == NOW + timedelta(hours=1)


def test_redeem_unknown_coupon(db):
    with pytest.raises(HTTPException) as exc:
        redeem_coupon(db, uuid.uuid4())

    assert exc.value.status_code == 404


def test_expired_coupon_cannot_be_redeemed(db, business, prize):
    coupon = create_coupon(db, USER, business.id, prize.id, "LATE", NOW - timedelta(days=1), now=NOW - timedelta(days=31))
    db.commit()

    with pytest.raises(HTTPException) as exc:
        redeem_coupon(db, coupon.id, now=NOW)

    assert exc.value.status_code == 409


def test_list_active_filters_redeemed_and_expired(db, business, prize):
    create_coupon(db, USER, business.id, prize.id, "FRESH", NOW + timedelta(days=10), now=NOW)
    create_coupon(db, USER, business.id, prize.id, "EXPIRED", NOW - timedelta(seconds=1), now=NOW - timedelta(days=2))
    redeemed = create_coupon(db, USER, business.id, prize.id, "USED", NOW + timedelta(days=365), now=NOW)
    db.commit()

    redeem_coupon(db, redeemed.id, now=NOW)
    db.commit()

    active_codes = [c.code for c in list_active(db, USER, business.id, as_of=NOW)]
    assert active_codes == ["FRESH"]
    assert count_active(db, USER, business.id, as_of=NOW) == 1

    # expired and redeemed coupons are still returned by the plain listing
    all_codes = {c.code for c in list_coupons(db, USER, business.id)}
    assert all_codes == {"FRESH", "EXPIRED", "USED"}


def test_coupon_without_expiry_stays_active(db, business, prize):
    coupon = create_coupon(db, USER, business.id, prize.id, "FOREVER", now=NOW)
    coupon.expired_at = None
    db.commit()

    assert [c.code for c in list_active(db, USER, business.id, as_of=NOW + timedelta(days=9999))] == ["FOREVER"]


def test_aware_expiry_is_stored_as_utc(db, business, prize):
    expiry = datetime(2026, 10, 17, 20, 0, 0, tzinfo=timezone(timedelta(hours=5)))

    coupon = create_coupon(db, USER, business.id, prize.id, "TZ", expiry, now=NOW)
    db.commit()

    assert coupon.expired_at == datetime(2026, 10, 17, 15, 0, 0)
    # 15:00 UTC has passed by 18:30 UTC
    assert list_active(db, USER, business.id, as_of=NOW) == []
    assert count_active(db, USER, business.id, as_of=datetime(2026, 10, 17, 19, 0, tzinfo=timezone(timedelta(hours=5)))) == 1


@pytest.mark.parametrize("code", ["", "   "])
def test_blank_code_is_rejected(db, business, prize, code):
    with pytest.raises(HTTPException) as exc:
        create_coupon(db, USER, business.id, prize.id, code)

    assert exc.value.status_code == 400
