from __future__ import annotations

import logging
import random
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Optional

from config import get_config_value
from db.database import transaction
from utils.cache import TTLCache
from utils.timezone import now, now_iso

logger = logging.getLogger(__name__)

SETTINGS_CACHE = TTLCache("app_settings")
ONLINE_COUNT_CACHE = TTLCache("online_count")

LIFELINES_MAX = 3
ONLINE_COUNT_TTL_SECONDS = 60


@dataclass(frozen=True)
class AppSettings:
    referral_bonus_xp: int = 50
    lifelines_per_quiz: int = 3
    reel_watch_threshold_seconds: int = 5
    reels_prefetch_count: int = 3


def _load_settings(conn) -> AppSettings:
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT referral_bonus_xp, lifelines_per_quiz, reel_watch_threshold_seconds, reels_prefetch_count
        FROM app_config
        WHERE id = 1
        """
    )
    row = cursor.fetchone()
    if not row:
        return AppSettings()
    return AppSettings(
        referral_bonus_xp=max(0, int(row["referral_bonus_xp"])),
        lifelines_per_quiz=min(LIFELINES_MAX, max(1, int(row["lifelines_per_quiz"]))),
        reel_watch_threshold_seconds=max(0, int(row["reel_watch_threshold_seconds"])),
        reels_prefetch_count=max(1, int(row["reels_prefetch_count"])),
    )


def get_app_settings(conn) -> AppSettings:
    ttl = get_config_value("cache", "settings_ttl_seconds", 300)
    return SETTINGS_CACHE.get("settings", lambda: _load_settings(conn), ttl)


def update_app_settings(conn, **changes) -> AppSettings:
    """Write new runtime settings and drop the cached copy."""
    allowed = set(asdict(AppSettings()))
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
    if not changes:
        return get_app_settings(conn)
    assignments = ", ".join(f"{key} = ?" for key in changes)
    with transaction(conn):
        conn.execute(
            f"UPDATE app_config SET {assignments}, updated_at = ? WHERE id = 1",
            (*changes.values(), now_iso()),
        )
    SETTINGS_CACHE.invalidate()
    logger.info("App settings updated: %s", changes)
    return get_app_settings(conn)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _compute_online_count(conn) -> int:
    cursor = conn.cursor()
    cursor.execute("SELECT * FROM online_users_config WHERE id = 1")
    row = cursor.fetchone()
    if not row:
        return 0
    current = now()
    if row["mode"] == "actual":
        cutoff = current - timedelta(minutes=int(row["active_minutes_threshold"]))
        cursor.execute(
            "SELECT COUNT(*) FROM users_profile WHERE last_active_at >= ?",
            (cutoff.isoformat(sep=" ", timespec="seconds"),),
        )
        return int(cursor.fetchone()[0])
    last_updated = _parse_ts(row["last_updated_at"])
    interval = timedelta(minutes=int(row["update_interval_minutes"]))
    if last_updated is not None and current - last_updated < interval:
        return int(row["current_online_count"])
    low, high = sorted((int(row["online_count_min"]), int(row["online_count_max"])))
    count = random.randint(low, high)
    with transaction(conn):
        conn.execute(
            "UPDATE online_users_config SET current_online_count = ?, last_updated_at = ? WHERE id = 1",
            (count, current.isoformat(sep=" ", timespec="seconds")),
        )
    logger.info("Online users display count refreshed to %s", count)
    return count


def get_online_count(conn) -> int:
    """Display counter for "students online", refreshed lazily."""
    return ONLINE_COUNT_CACHE.get("count", lambda: _compute_online_count(conn), ONLINE_COUNT_TTL_SECONDS)
