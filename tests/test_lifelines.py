import pytest

from utils.app_settings import get_app_settings, update_app_settings
from utils.attempts import answer_question, start_attempt
from utils.errors import InsufficientWatchTime, InvalidAttemptTransition
from utils.lifelines import LifelineStatus, get_lifeline_status, restore_lifelines


def _exhaust(conn, phone, attempt_id, question_ids):
    for qid in question_ids[:3]:
        answer_question(conn, phone, attempt_id, qid, 2, 5)


def test_lifeline_status_flags():
    assert LifelineStatus(0, 3).as_response() == {
        "remaining": 0,
        "used": 3,
        "can_continue": True,
        "can_watch_video_to_restore": True,
    }
    assert LifelineStatus(2, 1).can_watch_video is False


def test_restore_refills_lifelines_without_xp(conn, make_user, seed_questions, seed_video):
    make_user("9000000001")
    question_ids = seed_questions(1)
    video_id = seed_video(duration_seconds=60)
    started = start_attempt(conn, "9000000001", 1)
    _exhaust(conn, "9000000001", started["attempt_id"], question_ids)
    assert get_lifeline_status(conn, started["attempt_id"]).lifelines_remaining == 0

    result = restore_lifelines(conn, "9000000001", started["attempt_id"], video_id, 50)

    assert result["lifelines_restored"] == 3
    status = get_lifeline_status(conn, started["attempt_id"])
    assert status.lifelines_remaining == 3
    row = conn.execute(
        "SELECT lifeline_videos_watched FROM level_attempts WHERE id = ?", (started["attempt_id"],)
    ).fetchone()
    assert row[0] == 1
    assert conn.execute("SELECT COUNT(*) FROM lifeline_videos_watched").fetchone()[0] == 1
    xp = conn.execute("SELECT xp_total FROM users_profile WHERE phone = ?", ("9000000001",)).fetchone()[0]
    assert xp == 0


def test_restore_requires_enough_watch_time(conn, make_user, seed_questions, seed_video):
    make_user("9000000001")
    question_ids = seed_questions(1)
    video_id = seed_video(duration_seconds=60)
    started = start_attempt(conn, "9000000001", 1)
    _exhaust(conn, "9000000001", started["attempt_id"], question_ids)

    with pytest.raises(InsufficientWatchTime):
        restore_lifelines(conn, "9000000001", started["attempt_id"], video_id, 30)

    assert get_lifeline_status(conn, started["attempt_id"]).lifelines_remaining == 0
    assert conn.execute("SELECT COUNT(*) FROM lifeline_videos_watched").fetchone()[0] == 0


def test_restore_on_finished_attempt_is_rejected(conn, make_user, seed_questions, seed_video, play_level):
    make_user("9000000001")
    seed_questions(1)
    video_id = seed_video()
    started, _ = play_level("9000000001", 1, correct=5)

    with pytest.raises(InvalidAttemptTransition):
        restore_lifelines(conn, "9000000001", started["attempt_id"], video_id, 180)


def test_lifelines_per_quiz_comes_from_runtime_settings(conn, make_user, seed_questions):
    make_user("9000000001")
    seed_questions(1)

    settings = update_app_settings(conn, lifelines_per_quiz=2)
    started = start_attempt(conn, "9000000001", 1)

    assert settings.lifelines_per_quiz == 2
    assert started["lifelines_remaining"] == 2


def test_lifelines_setting_is_clamped(conn):
    conn.execute("UPDATE app_config SET lifelines_per_quiz = 9 WHERE id = 1")
    assert get_app_settings(conn).lifelines_per_quiz == 3
