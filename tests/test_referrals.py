import pytest

from utils.errors import (
    AlreadyReferred,
    InvalidPagination,
    InvalidReferralCode,
    SelfReferralNotAllowed,
)
from utils.profiles import create_user
from utils.referrals import apply_referral, get_referral_stats, get_referred_users


def _xp(conn, phone):
    return conn.execute("SELECT xp_total FROM users_profile WHERE phone = ?", (phone,)).fetchone()[0]


def test_signup_with_referral_code_scenario(conn, make_user):
    make_user("9000000001", name="Asha", xp_total=100, referral_code="11111")

    created = create_user(conn, "9000000002", name="Bharat", referral_code="11111")

    assert created["is_new_user"] is True
    assert created["referral"] == {"applied": True, "referrer_name": "Asha", "xp_granted": 50}
    assert _xp(conn, "9000000001") == 150
    assert _xp(conn, "9000000002") == 50
    records = conn.execute("SELECT referrer_phone, referee_phone, status FROM referral_tracking").fetchall()
    assert [tuple(r) for r in records] == [("9000000001", "9000000002", "active")]

    with pytest.raises(AlreadyReferred):
        apply_referral(conn, "9000000002", "11111")
    assert _xp(conn, "9000000001") == 150
    assert _xp(conn, "9000000002") == 50


def test_second_referrer_is_rejected(conn, make_user):
    make_user("9000000001", referral_code="11111")
    make_user("9000000003", referral_code="33333")
    make_user("9000000002")
    apply_referral(conn, "9000000002", "11111")

    with pytest.raises(AlreadyReferred):
        apply_referral(conn, "9000000002", "33333")

    assert _xp(conn, "9000000003") == 0
    assert conn.execute("SELECT COUNT(*) FROM referral_tracking").fetchone()[0] == 1


def test_bad_code_at_signup_still_creates_account(conn):
    created = create_user(conn, "9000000002", referral_code="99999")

    assert created["is_new_user"] is True
    assert created["referral"]["applied"] is False
    assert created["referral"]["error"] == "INVALID_REFERRAL_CODE"
    assert created["user"]["xp_total"] == 0
    assert conn.execute("SELECT COUNT(*) FROM referral_tracking").fetchone()[0] == 0


def test_invalid_and_self_referral(conn, make_user):
    make_user("9000000001", referral_code="11111")

    with pytest.raises(InvalidReferralCode):
        apply_referral(conn, "9000000001", "54321")
    with pytest.raises(SelfReferralNotAllowed):
        apply_referral(conn, "9000000001", "11111")
    assert _xp(conn, "9000000001") == 0


def test_missing_code_is_a_no_op(conn, make_user):
    make_user("9000000001")
    assert apply_referral(conn, "9000000001", None) == {"applied": False}
    assert apply_referral(conn, "9000000001", "  ") == {"applied": False}


def test_bonus_amount_follows_runtime_setting(conn, make_user):
    conn.execute("UPDATE app_config SET referral_bonus_xp = 20 WHERE id = 1")
    make_user("9000000001", referral_code="11111")
    make_user("9000000002")

    apply_referral(conn, "9000000002", "11111")

    assert _xp(conn, "9000000001") == 20
    assert _xp(conn, "9000000002") == 20


def test_referral_stats_and_referred_users(conn, make_user):
    make_user("9000000001", referral_code="11111")
    make_user("9000000002", name="Bharat")
    make_user("9000000003", name="Chitra")
    apply_referral(conn, "9000000002", "11111")
    apply_referral(conn, "9000000003", "11111")

    stats = get_referral_stats(conn, "9000000001")
    referred = get_referred_users(conn, "9000000001", limit=10, offset=0)

    assert stats == {
        "referral_code": "11111",
        "total_referrals": 2,
        "total_xp_earned": 100,
        "was_referred": False,
    }
    assert get_referral_stats(conn, "9000000002")["was_referred"] is True
    assert sorted(user["name"] for user in referred) == ["Bharat", "Chitra"]
    with pytest.raises(InvalidPagination):
        get_referred_users(conn, "9000000001", limit=0, offset=0)
    with pytest.raises(InvalidPagination) as excinfo:
        get_referred_users(conn, "9000000001", limit=10, offset=-1)
    assert excinfo.value.code == "INVALID_OFFSET"


def test_existing_phone_logs_in_instead_of_registering(conn):
    first = create_user(conn, "9000000002", name="Bharat")
    second = create_user(conn, "9000000002", name="Someone else")

    assert second["is_new_user"] is False
    assert second["user"]["name"] == "Bharat"
    assert second["user"]["referral_code"] == first["user"]["referral_code"]
    assert len(first["user"]["referral_code"]) == 5


def test_racing_codes_for_one_referee_grant_once(conn, make_user, run_concurrently):
    make_user("9000000001", referral_code="11111")
    make_user("9000000002", referral_code="22222")
    make_user("9000000003", referral_code="33333")

    results = run_concurrently(apply_referral, [("9000000002", "11111"), ("9000000002", "33333")])

    applied = [result for result in results if isinstance(result, dict)]
    rejected = [result for result in results if isinstance(result, AlreadyReferred)]
    assert len(applied) == 1 and len(rejected) == 1
    assert conn.execute("SELECT COUNT(*) FROM referral_tracking").fetchone()[0] == 1
    assert _xp(conn, "9000000002") == 50
    assert _xp(conn, "9000000001") + _xp(conn, "9000000003") == 50


class _StaleReferralCheck:
    """Connection wrapper whose existing-referral lookup always comes back empty."""

    def __init__(self, conn):
        self._conn = conn

    def execute(self, sql, params=()):
        if "FROM referral_tracking WHERE referee_phone" in sql:
            return self._conn.execute("SELECT 1 WHERE 0")
        return self._conn.execute(sql, params)

    def __getattr__(self, name):
        return getattr(self._conn, name)


def test_unique_referee_constraint_backstops_a_stale_check(conn, make_user):
    make_user("9000000001", referral_code="11111")
    make_user("9000000002", referral_code="22222")
    make_user("9000000003", referral_code="33333")
    apply_referral(conn, "9000000002", "11111")

    with pytest.raises(AlreadyReferred):
        apply_referral(_StaleReferralCheck(conn), "9000000002", "33333")

    assert conn.execute("SELECT COUNT(*) FROM referral_tracking").fetchone()[0] == 1
    assert _xp(conn, "9000000002") == 50
    assert _xp(conn, "9000000003") == 0
    assert conn.in_transaction is False
