# tests/test_engine.py
from datetime import date, datetime, timezone
import pytest
from sqlalchemy.exc import OperationalError
from dispensary.compliance.dosage import InvalidTimezoneError
from dispensary.compliance.engine import check_order_compliance
from dispensary.models import ComplianceRule, Store, OrderStatus
from conftest import NOW, add_user, add_order

def check(db, user, store, *pairs, now=NOW):
    items = [{"productId": p, "quantity": q} for p, q in pairs]
    return check_order_compliance(db, user, store, items, now=now)

def test_verified_adult_within_limit(db, seed):
    r = check(db, seed.user, seed.store, (seed.low, 50))
    assert r.is_valid is True
    assert r.errors == []

def test_single_order_over_limit(db, seed):
    r = check(db, seed.user, seed.store, (seed.high, 2))
    assert r.is_valid is False
    assert r.codes() == ["DAILY_THC_LIMIT_EXCEEDED"]

def test_cumulative_with_same_day_order(db, seed):
    add_order(db, seed.user, seed.store, [(seed.low, 60)])
    r = check(db, seed.user, seed.store, (seed.low, 50))
    assert r.codes() == ["DAILY_THC_LIMIT_EXCEEDED"]

def test_unverified_user(db, seed):
    u = add_user(db, verified=False)
    r = check(db, u.id, seed.store, (seed.low, 1))
    assert r.is_valid is False
    assert r.codes() == ["AGE_NOT_VERIFIED"]

def test_unverified_user_still_gets_dosage_check(db, seed):
    u = add_user(db, verified=False)
    r = check(db, u.id, seed.store, (seed.high, 2))
    assert r.codes() == ["AGE_NOT_VERIFIED", "DAILY_THC_LIMIT_EXCEEDED"]

def test_underage_user(db, seed):
    u = add_user(db, dob=date(2010, 1, 1))
    r = check(db, u.id, seed.store, (seed.low, 1))
    assert r.codes() == ["UNDERAGE"]
    assert "21" in r.errors[0].message

def test_missing_dob(db, seed):
    u = add_user(db, dob=None)
    assert check(db, u.id, seed.store, (seed.low, 1)).codes() == ["DATE_OF_BIRTH_MISSING"]

def test_violations_in_evaluation_order(db, seed):
    u = add_user(db, dob=date(2012, 5, 5), verified=False)
    r = check(db, u.id, seed.store, (seed.high, 2))
    assert r.codes() == ["AGE_NOT_VERIFIED", "UNDERAGE", "DAILY_THC_LIMIT_EXCEEDED"]

def test_unknown_user_skips_dosage(db, seed):
    r = check(db, "nonexistent-user-id", seed.store, (seed.high, 5))
    assert r.is_valid is False
    assert r.codes() == ["USER_NOT_FOUND"]

def test_unknown_store_short_circuits(db, seed):
    r = check(db, "nonexistent-user-id", "nonexistent-store-id", (seed.high, 5))
    assert r.is_valid is False
    assert r.codes() == ["STORE_STATE_UNKNOWN"]

def test_store_without_state(db, seed):
    s = Store(name="Pop-up", state_code=None)
    db.add(s); db.commit()
    assert check(db, seed.user, s.id, (seed.low, 1)).codes() == ["STORE_STATE_UNKNOWN"]

@pytest.mark.parametrize("dob,verified,qty", [
    (date(2015, 1, 1), False, 1000),
    (None, False, 1),
    (date(1990, 1, 1), True, 10_000),
])
def test_unregulated_state_is_permissive(db, seed, dob, verified, qty):
    u = add_user(db, dob=dob, verified=verified)
    r = check(db, u.id, seed.tx_store, (seed.high, qty))
    assert r.is_valid is True
    assert r.errors == []

def test_rules_differ_by_state(db, seed):
    db.add(ComplianceRule(state_code="WA", min_age=21, max_daily_thc_mg=500, must_verify_age=True))
    wa = Store(name="WA Test Store", state_code="wa", city="Seattle")
    db.add(wa); db.commit()
    assert check(db, seed.user, seed.store, (seed.high, 1)).is_valid is True
    assert check(db, seed.user, wa.id, (seed.high, 1)).codes() == ["DAILY_THC_LIMIT_EXCEEDED"]

def test_idempotent_without_new_orders(db, seed):
    add_order(db, seed.user, seed.store, [(seed.low, 60)])
    first = check(db, seed.user, seed.store, (seed.low, 50))
    second = check(db, seed.user, seed.store, (seed.low, 50))
    assert first == second

def test_store_timezone_defines_the_day(db, seed):
    la = Store(name="LA Late Night", state_code="CA", timezone="America/Los_Angeles")
    utc = Store(name="CA UTC Store", state_code="CA")
    db.add_all([la, utc]); db.commit()
    # 13:00 PDT on the 18th; at evaluation it is 22:00 PDT on the 18th but already the 19th in UTC
    add_order(db, seed.user, la.id, [(seed.high, 1)], created_at=datetime(2026, 10, 18, 20, 0, tzinfo=timezone.utc))
    now = datetime(2026, 10, 19, 5, 0, tzinfo=timezone.utc)
    assert check(db, seed.user, la.id, (seed.low, 30), now=now).codes() == ["DAILY_THC_LIMIT_EXCEEDED"]
    assert check(db, seed.user, utc.id, (seed.low, 30), now=now).is_valid is True

def test_cancelled_order_frees_allowance(db, seed):
    o = add_order(db, seed.user, seed.store, [(seed.high, 1)])
    assert check(db, seed.user, seed.store, (seed.low, 30)).is_valid is False
    o.status = OrderStatus.CANCELLED
    db.commit()
    assert check(db, seed.user, seed.store, (seed.low, 30)).is_valid is True

def test_database_errors_propagate(db, seed, engine):
    with engine.begin() as conn:
        conn.exec_driver_sql("DROP TABLE order_items")
    with pytest.raises(OperationalError):
        check(db, seed.user, seed.store, (seed.low, 1))

def test_bad_store_timezone_is_not_a_violation(db, seed):
    s = Store(name="Misconfigured", state_code="CA", timezone="Mars/Olympus_Mons")
    db.add(s); db.commit()
    with pytest.raises(InvalidTimezoneError):
        check(db, seed.user, s.id, (seed.low, 1))
