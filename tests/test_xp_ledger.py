import pytest

from utils.errors import UserNotFound
from utils.timezone import today_iso
from utils.xp import apply_xp


def _summary(conn, phone):
    return conn.execute(
        """
        SELECT total_xp_today, levels_completed_today, questions_attempted_today, videos_watched_today
        FROM daily_xp_summary WHERE phone = ? AND date = ?
        """,
        (phone, today_iso()),
    ).fetchone()


def test_grants_add_to_total_and_today(conn, make_user):
    make_user("9000000001", xp_total=100)

    assert apply_xp(conn, "9000000001", 30, levels_completed=1, questions_attempted=10) == (130, 30)
    assert apply_xp(conn, "9000000001", 30, videos_watched=1) == (160, 60)

    assert tuple(_summary(conn, "9000000001")) == (60, 1, 10, 1)


def test_negative_grant_and_unknown_user_are_rejected(conn, make_user):
    make_user("9000000001")

    with pytest.raises(ValueError):
        apply_xp(conn, "9000000001", -5)
    with pytest.raises(UserNotFound):
        apply_xp(conn, "9000000099", 5)

    assert _summary(conn, "9000000001") is None


def test_concurrent_grants_are_never_lost(conn, make_user, run_concurrently):
    make_user("9000000001")

    def grant_many(thread_conn):
        return [apply_xp(thread_conn, "9000000001", 1) for _ in range(20)]

    results = run_concurrently(grant_many, [()] * 8)

    assert not [result for result in results if isinstance(result, Exception)]
    total = conn.execute("SELECT xp_total FROM users_profile WHERE phone = ?", ("9000000001",)).fetchone()[0]
    assert total == 160
    assert _summary(conn, "9000000001")["total_xp_today"] == 160
