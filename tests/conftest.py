import itertools
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.testclient import TestClient

import config
from db import database
from utils.app_settings import ONLINE_COUNT_CACHE, SETTINGS_CACHE
from utils.reels import invalidate_active_reels
from utils.timezone import now_iso

ENV_OVERRIDES = (
    "QUIZLADDER_DB_PATH",
    "QUIZLADDER_DB_TIMEOUT",
    "QUIZLADDER_TIMEZONE",
    "QUIZLADDER_LOG_LEVEL",
)


def _reset_caches() -> None:
    SETTINGS_CACHE.invalidate()
    ONLINE_COUNT_CACHE.invalidate()
    invalidate_active_reels()


@pytest.fixture
def db_env(tmp_path, monkeypatch):
    config_dir = tmp_path / ".quizladder"
    config_dir.mkdir()
    config_path = config_dir / "config.toml"
    config_path.write_text(
        "\n".join(
            [
                "[rewards]",
                "xp_per_correct_first_attempt = 5",
                "xp_per_correct_repeat = 1",
                "unlock_accuracy_percent = 30",
                "min_watch_percent = 80",
            ]
        ),
        encoding="utf-8",
    )
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config, "CONFIG_PATH", config_path)
    monkeypatch.setattr(database, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(database, "DB_PATH", config_dir / "quizladder.db")
    _reset_caches()
    database.init_db()
    yield config_dir
    _reset_caches()


@pytest.fixture
def conn(db_env):
    with database.get_conn() as conn:
        yield conn


@pytest.fixture
def client(db_env):
    from main import app

    return TestClient(app)


@pytest.fixture
def make_user(conn):
    codes = itertools.count(20001)

    def _make(phone, name=None, xp_total=0, current_level=1, medium="english", referral_code=None):
        stamp = now_iso()
        conn.execute(
            """
            INSERT INTO users_profile (
                phone, name, medium, referral_code, date_joined,
                xp_total, current_level, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (phone, name or phone, medium, referral_code or str(next(codes)),
             stamp[:10], xp_total, current_level, stamp, stamp),
        )
        return phone

    return _make


@pytest.fixture
def seed_questions(conn):
    """Insert ten questions for a level; option ``correct`` carries the marker."""

    def _seed(level, medium="both", correct=1, count=10):
        ids = []
        for order in range(1, count + 1):
            options = [f"{medium} option {n}" for n in range(1, 5)]
            options[correct - 1] = "@" + options[correct - 1]
            cursor = conn.execute(
                """
                INSERT INTO questions (
                    level, question_order, question_text, option_1, option_2, option_3, option_4,
                    explanation_text, subject, topic, medium
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (level, order, f"L{level} Q{order} ({medium})", *options,
                 f"Explanation {order}", "GK", "Polity", medium),
            )
            ids.append(cursor.lastrowid)
        return ids

    return _seed


@pytest.fixture
def seed_video(conn):
    def _seed(level=1, duration_seconds=180, name="Course promo"):
        cursor = conn.execute(
            """
            INSERT INTO promotional_videos (level, video_name, video_url, duration_seconds)
            VALUES (?, ?, ?, ?)
            """,
            (level, name, f"https://cdn.example.test/promo-{level}.mp4", duration_seconds),
        )
        return cursor.lastrowid

    return _seed


@pytest.fixture
def seed_reel(conn):
    def _seed(title="Reel", is_active=True, duration_seconds=30):
        cursor = conn.execute(
            """
            INSERT INTO reels (title, video_url, duration_seconds, is_active)
            VALUES (?, ?, ?, ?)
            """,
            (title, f"https://cdn.example.test/{title}.mp4", duration_seconds, int(is_active)),
        )
        return cursor.lastrowid

    return _seed


@pytest.fixture
def play_level(conn):
    """Start an attempt and answer all ten questions, the first ``correct`` of them right."""
    from utils.attempts import answer_question, start_attempt

    def _play(phone, level, correct):
        started = start_attempt(conn, phone, level)
        last = None
        for index, question in enumerate(started["questions"]):
            answer = 1 if index < correct else 2
            last = answer_question(conn, phone, started["attempt_id"], question["sl"], answer, 10)
        return started, last

    return _play


@pytest.fixture
def run_concurrently(db_env):
    """Call ``target(conn, *args)`` once per args tuple, each on its own thread and connection.

    All threads start together. Returns results in call order, with a raised
    exception standing in for the result of the call that raised it.
    """

    def _run(target, calls):
        barrier = threading.Barrier(len(calls))

        def worker(args):
            with database.get_conn() as thread_conn:
                barrier.wait()
                try:
                    return target(thread_conn, *args)
                except Exception as exc:
                    return exc

        with ThreadPoolExecutor(max_workers=len(calls)) as pool:
            return list(pool.map(worker, calls))

    return _run
