from datetime import timedelta
from pathlib import Path

import pytest

import config
from utils.app_settings import (
    ONLINE_COUNT_CACHE,
    get_app_settings,
    get_online_count,
    update_app_settings,
)
from utils.timezone import now


def _write_config(path: Path, text: str) -> None:
    path.write_text(text, encoding="utf-8")


def test_load_config_fills_defaults_for_missing_sections(tmp_path, monkeypatch):
    config_dir = tmp_path / ".quizladder"
    config_dir.mkdir()
    config_path = config_dir / "config.toml"
    _write_config(config_path, "[rewards]\nmin_watch_percent = 75\n")

    monkeypatch.setattr(config, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config, "CONFIG_PATH", config_path)
    monkeypatch.delenv("QUIZLADDER_TIMEZONE", raising=False)

    loaded = config.load_config()

    assert loaded["rewards"]["min_watch_percent"] == 75.0
    assert loaded["rewards"]["xp_per_correct_first_attempt"] == 5
    assert loaded["calendar"]["timezone"] == "Asia/Kolkata"
    assert loaded["leaderboard"]["top_n"] == 50


def test_environment_overrides_config_file(tmp_path, monkeypatch):
    config_dir = tmp_path / ".quizladder"
    config_dir.mkdir()
    config_path = config_dir / "config.toml"
    _write_config(config_path, "[calendar]\ntimezone = \"Asia/Kolkata\"\n[logging]\nlevel = \"info\"\n")

    monkeypatch.setattr(config, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config, "CONFIG_PATH", config_path)
    monkeypatch.setenv("QUIZLADDER_TIMEZONE", "UTC")
    monkeypatch.setenv("QUIZLADDER_DB_PATH", str(tmp_path / "other.db"))

    assert config.get_config_value("calendar", "timezone") == "UTC"
    assert config.get_config_value("database", "path") == str(tmp_path / "other.db")
    assert config.get_config_value("logging", "level") == "INFO"
    assert config.get_config_value("missing", "key", "fallback") == "fallback"


def test_missing_config_is_copied_from_example(tmp_path, monkeypatch):
    config_dir = tmp_path / ".quizladder"
    config_path = config_dir / "config.toml"

    monkeypatch.setattr(config, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config, "CONFIG_PATH", config_path)

    loaded = config.load_config()

    assert config_path.exists()
    assert loaded["cache"]["reels_ttl_seconds"] == 3600


def test_settings_are_cached_until_updated(conn):
    assert get_app_settings(conn).referral_bonus_xp == 50

    conn.execute("UPDATE app_config SET referral_bonus_xp = 75 WHERE id = 1")
    assert get_app_settings(conn).referral_bonus_xp == 50

    updated = update_app_settings(conn, referral_bonus_xp=80)
    assert updated.referral_bonus_xp == 80
    assert get_app_settings(conn).referral_bonus_xp == 80


def test_update_rejects_unknown_settings(conn):
    with pytest.raises(ValueError):
        update_app_settings(conn, free_xp=1000)


def test_fake_online_count_stays_in_range(conn):
    conn.execute(
        "UPDATE online_users_config SET mode = 'fake', online_count_min = 120, online_count_max = 130 WHERE id = 1"
    )

    count = get_online_count(conn)

    assert 120 <= count <= 130
    stored = conn.execute("SELECT current_online_count FROM online_users_config").fetchone()[0]
    assert stored == count


def test_actual_online_count_uses_recent_activity(conn, make_user):
    conn.execute("UPDATE online_users_config SET mode = 'actual', active_minutes_threshold = 5 WHERE id = 1")
    make_user("9000000001")
    make_user("9000000002")
    recent = now().isoformat(sep=" ", timespec="seconds")
    stale = (now() - timedelta(minutes=30)).isoformat(sep=" ", timespec="seconds")
    conn.execute("UPDATE users_profile SET last_active_at = ? WHERE phone = ?", (recent, "9000000001"))
    conn.execute("UPDATE users_profile SET last_active_at = ? WHERE phone = ?", (stale, "9000000002"))

    assert get_online_count(conn) == 1

    ONLINE_COUNT_CACHE.invalidate()
    conn.execute("UPDATE users_profile SET last_active_at = ? WHERE phone = ?", (recent, "9000000002"))
    assert get_online_count(conn) == 2
