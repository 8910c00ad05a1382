"""Per-user reels feed.

The feed serves active reels the user has not started yet, newest first.
Once every active reel has been started the user's progress is recycled:
progress rows for active reels are deleted and only the hearted ones are
re-inserted, so hearts survive while everything else becomes eligible again.

The exhaustion check and the reset run inside one BEGIN IMMEDIATE
transaction, which holds SQLite's write lock until commit. Two feed requests
for the same user therefore cannot both observe an exhausted catalog.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Set

from config import get_config_value
from db.database import execute_returning, transaction
from utils.app_settings import get_app_settings
from utils.cache import TTLCache
from utils.errors import InsufficientWatchTime, ReelNotFound, check_pagination
from utils.timezone import now_iso

logger = logging.getLogger(__name__)

ACTIVE_REELS_CACHE = TTLCache("active_reels")
MAX_FEED_LIMIT = 20

REEL_COLUMNS = """
    id, title, description, video_url, thumbnail_url, duration_seconds,
    category, tags, created_at
"""


@dataclass
class FeedPage:
    reels: List[Dict] = field(default_factory=list)
    has_more: bool = False

    def as_response(self) -> Dict:
        return {"success": True, "reels": self.reels, "has_more": self.has_more}


def _load_active_reels(conn) -> List[Dict]:
    cursor = conn.cursor()
    cursor.execute(f"SELECT {REEL_COLUMNS} FROM reels WHERE is_active = 1 ORDER BY id DESC")
    return [dict(row) for row in cursor.fetchall()]


def get_active_reels(conn) -> List[Dict]:
    """Catalog metadata of active reels, newest first. Counters are not cached.

    The cached metadata is only reused while the set of active ids in the
    store still matches it, so activating or retiring a reel shows up on the
    next read without calling invalidate_active_reels().
    """
    ttl = get_config_value("cache", "reels_ttl_seconds", 3600)
    live_ids = [
        row["id"]
        for row in conn.execute("SELECT id FROM reels WHERE is_active = 1 ORDER BY id DESC").fetchall()
    ]
    cached = ACTIVE_REELS_CACHE.get("active", lambda: _load_active_reels(conn), ttl)
    if [reel["id"] for reel in cached] != live_ids:
        logger.info("Active reel catalog changed, reloading")
        invalidate_active_reels()
        cached = ACTIVE_REELS_CACHE.get("active", lambda: _load_active_reels(conn), ttl)
    return cached


def invalidate_active_reels() -> None:
    ACTIVE_REELS_CACHE.invalidate()


def _require_active_reel(conn, reel_id: int) -> None:
    row = conn.execute(
        "SELECT 1 FROM reels WHERE id = ? AND is_active = 1", (reel_id,)
    ).fetchone()
    if row is None:
        raise ReelNotFound()


def _reset_progress(conn, phone: str) -> Set[int]:
    """Clear the user's progress on active reels, keeping hearts. Returns kept reel ids."""
    hearted = {
        row["reel_id"]
        for row in conn.execute(
            """
            SELECT p.reel_id FROM user_reel_progress p
            JOIN reels r ON r.id = p.reel_id
            WHERE p.phone = ? AND p.is_hearted = 1 AND r.is_active = 1
            """,
            (phone,),
        ).fetchall()
    }
    conn.execute(
        """
        DELETE FROM user_reel_progress
        WHERE phone = ? AND reel_id IN (SELECT id FROM reels WHERE is_active = 1)
        """,
        (phone,),
    )
    stamp = now_iso()
    conn.executemany(
        """
        INSERT INTO user_reel_progress (phone, reel_id, status, is_hearted, started_at, updated_at)
        VALUES (?, ?, 'started', 1, ?, ?)
        ON CONFLICT(phone, reel_id) DO NOTHING
        """,
        [(phone, reel_id, stamp, stamp) for reel_id in sorted(hearted)],
    )
    logger.info("Reel feed for %s recycled, %s hearted reels kept", phone, len(hearted))
    return hearted


def _attach_counters(conn, reels: List[Dict]) -> List[Dict]:
    if not reels:
        return reels
    placeholders = ", ".join("?" for _ in reels)
    counters = {
        row["id"]: row
        for row in conn.execute(
            f"SELECT id, total_views, total_hearts FROM reels WHERE id IN ({placeholders})",
            [reel["id"] for reel in reels],
        ).fetchall()
    }
    for reel in reels:
        row = counters.get(reel["id"])
        reel["total_views"] = row["total_views"] if row else 0
        reel["total_hearts"] = row["total_hearts"] if row else 0
    return reels


def get_feed(conn, phone: str, limit: int = 3) -> FeedPage:
    check_pagination(limit, 0, max_limit=MAX_FEED_LIMIT)
    with transaction(conn):
        active = get_active_reels(conn)
        if not active:
            return FeedPage()
        progress = conn.execute(
            "SELECT reel_id FROM user_reel_progress WHERE phone = ?", (phone,)
        ).fetchall()
        started = {row["reel_id"] for row in progress}
        unstarted = [reel for reel in active if reel["id"] not in started]
        if not unstarted:
            kept = _reset_progress(conn, phone)
            unstarted = [reel for reel in active if reel["id"] not in kept]
        page = [dict(reel, is_hearted=False) for reel in unstarted[:limit]]
        _attach_counters(conn, page)
    return FeedPage(reels=page, has_more=len(page) == limit)


def mark_started(conn, phone: str, reel_id: int) -> Dict:
    """Record that the user opened a reel. Views count once per user and reel."""
    with transaction(conn):
        _require_active_reel(conn, reel_id)
        stamp = now_iso()
        inserted = conn.execute(
            """
            INSERT INTO user_reel_progress (phone, reel_id, status, started_at, updated_at)
            VALUES (?, ?, 'started', ?, ?)
            ON CONFLICT(phone, reel_id) DO NOTHING
            """,
            (phone, reel_id, stamp, stamp),
        )
        is_new_start = inserted.rowcount == 1
        if is_new_start:
            row = execute_returning(
                conn,
                "UPDATE reels SET total_views = total_views + 1 WHERE id = ? RETURNING total_views",
                (reel_id,),
            )
        else:
            row = conn.execute("SELECT total_views FROM reels WHERE id = ?", (reel_id,)).fetchone()
    return {"success": True, "is_new_start": is_new_start, "total_views": int(row["total_views"])}


def mark_watched(conn, phone: str, reel_id: int, watch_duration_seconds: int) -> Dict:
    threshold = get_app_settings(conn).reel_watch_threshold_seconds
    if watch_duration_seconds < threshold:
        raise InsufficientWatchTime(
            f"Watch at least {threshold} seconds to count this reel",
            provided_seconds=watch_duration_seconds,
            required_seconds=threshold,
        )
    with transaction(conn):
        _require_active_reel(conn, reel_id)
        stamp = now_iso()
        existing = conn.execute(
            "SELECT status FROM user_reel_progress WHERE phone = ? AND reel_id = ?",
            (phone, reel_id),
        ).fetchone()
        if existing is None:
            # Watched without a start event; it still counts as the first view.
            conn.execute(
                """
                INSERT INTO user_reel_progress (
                    phone, reel_id, status, watch_duration_seconds, started_at, watched_at, updated_at
                )
                VALUES (?, ?, 'watched', ?, ?, ?, ?)
                """,
                (phone, reel_id, watch_duration_seconds, stamp, stamp, stamp),
            )
            conn.execute("UPDATE reels SET total_views = total_views + 1 WHERE id = ?", (reel_id,))
            first_watch = True
        else:
            first_watch = existing["status"] != "watched"
            conn.execute(
                """
                UPDATE user_reel_progress
                SET status = 'watched', watch_duration_seconds = ?, watched_at = ?, updated_at = ?
                WHERE phone = ? AND reel_id = ?
                """,
                (watch_duration_seconds, stamp, stamp, phone, reel_id),
            )
        conn.execute(
            """
            UPDATE reels
            SET total_completions = total_completions + 1,
                total_watch_time_seconds = total_watch_time_seconds + ?
            WHERE id = ?
            """,
            (watch_duration_seconds, reel_id),
        )
        if first_watch:
            conn.execute(
                "UPDATE users_profile SET videos_watched = videos_watched + 1, updated_at = ? WHERE phone = ?",
                (stamp, phone),
            )
    return {"success": True, "first_watch": first_watch}


def toggle_heart(conn, phone: str, reel_id: int) -> Dict:
    with transaction(conn):
        _require_active_reel(conn, reel_id)
        stamp = now_iso()
        existing = conn.execute(
            "SELECT is_hearted FROM user_reel_progress WHERE phone = ? AND reel_id = ?",
            (phone, reel_id),
        ).fetchone()
        if existing is None:
            conn.execute(
                """
                INSERT INTO user_reel_progress (phone, reel_id, status, is_hearted, started_at, updated_at)
                VALUES (?, ?, 'started', 1, ?, ?)
                """,
                (phone, reel_id, stamp, stamp),
            )
            is_hearted = True
        else:
            is_hearted = not existing["is_hearted"]
            conn.execute(
                "UPDATE user_reel_progress SET is_hearted = ?, updated_at = ? WHERE phone = ? AND reel_id = ?",
                (int(is_hearted), stamp, phone, reel_id),
            )
        row = execute_returning(
            conn,
            "UPDATE reels SET total_hearts = MAX(0, total_hearts + ?) WHERE id = ? RETURNING total_hearts",
            (1 if is_hearted else -1, reel_id),
        )
    return {
        "success": True,
        "is_hearted": is_hearted,
        "total_hearts": int(row["total_hearts"]),
        "message": "Reel hearted" if is_hearted else "Heart removed",
    }


def get_reel(conn, phone: str, reel_id: int) -> Dict:
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT r.id, r.title, r.description, r.video_url, r.thumbnail_url,
               r.duration_seconds, r.category, r.tags, r.total_views, r.total_hearts,
               r.created_at,
               COALESCE(p.is_hearted, 0) AS is_hearted,
               COALESCE(p.status, 'not_started') AS user_status
        FROM reels r
        LEFT JOIN user_reel_progress p ON p.reel_id = r.id AND p.phone = ?
        WHERE r.id = ? AND r.is_active = 1
        """,
        (phone, reel_id),
    )
    row = cursor.fetchone()
    if not row:
        raise ReelNotFound()
    reel = dict(row)
    reel["is_hearted"] = bool(reel["is_hearted"])
    return reel


def get_user_reel_stats(conn, phone: str) -> Dict:
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT
            COUNT(*) AS total_reels_viewed,
            COALESCE(SUM(CASE WHEN status = 'watched' THEN 1 ELSE 0 END), 0) AS total_reels_completed,
            COALESCE(SUM(is_hearted), 0) AS total_hearts_given,
            COALESCE(SUM(watch_duration_seconds), 0) AS total_watch_time_seconds
        FROM user_reel_progress
        WHERE phone = ?
        """,
        (phone,),
    )
    stats = dict(cursor.fetchone())
    available = len(get_active_reels(conn))
    stats["total_available_reels"] = available
    stats["completion_percentage"] = (
        round(stats["total_reels_viewed"] / available * 100) if available else 0
    )
    return stats


def get_hearted_reels(conn, phone: str, limit: int = 50, offset: int = 0) -> Dict:
    check_pagination(limit, offset)
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT r.id, r.title, r.description, r.video_url, r.thumbnail_url,
               r.duration_seconds, r.category, r.total_hearts, p.updated_at AS hearted_at
        FROM user_reel_progress p
        JOIN reels r ON r.id = p.reel_id
        WHERE p.phone = ? AND p.is_hearted = 1 AND r.is_active = 1
        ORDER BY p.updated_at DESC, p.id DESC
        LIMIT ? OFFSET ?
        """,
        (phone, limit, offset),
    )
    reels = [dict(row) for row in cursor.fetchall()]
    cursor.execute(
        """
        SELECT COUNT(*) FROM user_reel_progress p
        JOIN reels r ON r.id = p.reel_id
        WHERE p.phone = ? AND p.is_hearted = 1 AND r.is_active = 1
        """,
        (phone,),
    )
    total = int(cursor.fetchone()[0])
    return {
        "success": True,
        "reels": reels,
        "total": total,
        "has_more": offset + len(reels) < total,
    }
