"""XP rules and the ledger that applies them.

``apply_xp`` is the only code path that increments ``users_profile.xp_total``.
It always runs inside the caller's transaction so the profile total and the
per-day aggregate move together.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from config import load_config
from db.database import execute_returning, transaction
from utils.errors import (
    AttemptNotFound,
    InsufficientWatchTime,
    QuizNotCompleted,
    UserNotFound,
    VideoAlreadyWatched,
    VideoNotFound,
)
from utils.timezone import now_iso, today_iso

logger = logging.getLogger(__name__)

MAX_LEVEL = 100


def _rewards() -> dict:
    return load_config()["rewards"]


def xp_per_correct(is_first_attempt: bool) -> int:
    rewards = _rewards()
    if is_first_attempt:
        return rewards["xp_per_correct_first_attempt"]
    return rewards["xp_per_correct_repeat"]


def calculate_base_xp(correct_answers: int, is_first_attempt: bool) -> int:
    return correct_answers * xp_per_correct(is_first_attempt)


def calculate_accuracy(correct: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round((correct / total) * 100, 2)


def watch_percentage(watched_seconds: float, total_seconds: float) -> float:
    if total_seconds <= 0:
        return 0.0
    return (watched_seconds / total_seconds) * 100


def validate_watch(watched_seconds: float, total_seconds: float, reason: str = "get bonus XP") -> float:
    """Reject partial watches; returns the watched percentage on success."""
    required = _rewards()["min_watch_percent"]
    watched = watch_percentage(watched_seconds, total_seconds)
    if watched < required:
        raise InsufficientWatchTime(
            f"Watch at least {required:g}% of the video to {reason}",
            watched_percentage=round(watched, 2),
            required_percentage=required,
        )
    return watched


def apply_xp(
    conn,
    phone: str,
    delta: int,
    *,
    levels_completed: int = 0,
    videos_watched: int = 0,
    questions_attempted: int = 0,
) -> Tuple[int, int]:
    """Add ``delta`` XP to a user and to today's summary row.

    Both writes are relative updates executed by SQLite, so concurrent grants
    never overwrite one another. Returns ``(new_xp_total, new_xp_today)``.
    """
    if delta < 0:
        raise ValueError("XP grants cannot be negative")
    stamp = now_iso()
    row = execute_returning(
        conn,
        """
        UPDATE users_profile
        SET xp_total = xp_total + ?, updated_at = ?
        WHERE phone = ?
        RETURNING xp_total
        """,
        (delta, stamp, phone),
    )
    if row is None:
        raise UserNotFound()
    new_total = int(row["xp_total"])
    today_row = execute_returning(
        conn,
        """
        INSERT INTO daily_xp_summary (
            phone, date, total_xp_today, levels_completed_today,
            questions_attempted_today, videos_watched_today, created_at, updated_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(phone, date) DO UPDATE SET
            total_xp_today = total_xp_today + excluded.total_xp_today,
            levels_completed_today = levels_completed_today + excluded.levels_completed_today,
            questions_attempted_today = questions_attempted_today + excluded.questions_attempted_today,
            videos_watched_today = videos_watched_today + excluded.videos_watched_today,
            updated_at = excluded.updated_at
        RETURNING total_xp_today
        """,
        (phone, today_iso(), delta, levels_completed, questions_attempted, videos_watched, stamp, stamp),
    )
    if delta:
        logger.info("Granted %s XP to %s (total %s)", delta, phone, new_total)
    return new_total, int(today_row["total_xp_today"])


def evaluate_unlock(
    conn,
    phone: str,
    level: int,
    is_first_attempt: bool,
    accuracy: float,
) -> Optional[int]:
    """Unlock the next level after a qualifying first attempt.

    Returns the new current level, or None when nothing changed. The update
    is conditional on the stored level so it can only move upwards.
    """
    if not is_first_attempt:
        return None
    if accuracy < _rewards()["unlock_accuracy_percent"]:
        return None
    next_level = level + 1
    if next_level > MAX_LEVEL:
        return None
    row = execute_returning(
        conn,
        """
        UPDATE users_profile
        SET current_level = ?, updated_at = ?
        WHERE phone = ? AND current_level < ?
        RETURNING current_level
        """,
        (next_level, now_iso(), phone, next_level),
    )
    if row is None:
        return None
    logger.info("User %s unlocked level %s", phone, next_level)
    return int(row["current_level"])


def get_promotional_video(conn, video_id: int) -> Dict:
    cursor = conn.cursor()
    cursor.execute(
        "SELECT id, level, video_name, video_url, duration_seconds FROM promotional_videos WHERE id = ?",
        (video_id,),
    )
    row = cursor.fetchone()
    if not row:
        raise VideoNotFound()
    return dict(row)


def get_videos_for_level(conn, level: int, category: Optional[str] = None) -> List[Dict]:
    """Active promotional videos for a level, newest first."""
    query = """
        SELECT id, level, video_name, video_url, duration_seconds, description, category
        FROM promotional_videos
        WHERE level = ? AND is_active = 1
    """
    params: list = [level]
    if category:
        query += " AND category = ?"
        params.append(category)
    query += " ORDER BY id DESC"
    cursor = conn.cursor()
    cursor.execute(query, params)
    videos = [dict(row) for row in cursor.fetchall()]
    if not videos:
        raise VideoNotFound("No video available for this level")
    return videos


def complete_video(conn, phone: str, attempt_id: int, video_id: int, watch_duration_seconds: int) -> Dict:
    """Double the XP of a completed attempt after a qualifying video watch."""
    with transaction(conn):
        attempt = conn.execute(
            """
            SELECT id, level, xp_earned_base, video_watched, completion_status
            FROM level_attempts
            WHERE id = ? AND phone = ?
            """,
            (attempt_id, phone),
        ).fetchone()
        if attempt is None:
            raise AttemptNotFound()
        if attempt["completion_status"] != "completed":
            raise QuizNotCompleted()
        if attempt["video_watched"]:
            raise VideoAlreadyWatched()
        video = get_promotional_video(conn, video_id)
        validate_watch(watch_duration_seconds, video["duration_seconds"])

        base_xp = int(attempt["xp_earned_base"])
        bonus_xp = base_xp
        final_xp = base_xp + bonus_xp
        stamp = now_iso()
        marked = conn.execute(
            """
            UPDATE level_attempts
            SET video_watched = 1, xp_earned_final = ?, updated_at = ?
            WHERE id = ? AND video_watched = 0 AND completion_status = 'completed'
            """,
            (final_xp, stamp, attempt_id),
        )
        if marked.rowcount != 1:
            raise VideoAlreadyWatched()
        conn.execute(
            """
            INSERT INTO video_watch_log (
                phone, attempt_id, level, video_id, video_url,
                watch_duration_seconds, xp_bonus_granted, watch_completed_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (phone, attempt_id, attempt["level"], video_id, video["video_url"],
             watch_duration_seconds, bonus_xp, stamp),
        )
        conn.execute(
            "UPDATE users_profile SET total_ads_watched = total_ads_watched + 1 WHERE phone = ?",
            (phone,),
        )
        new_total, new_today = apply_xp(conn, phone, bonus_xp, videos_watched=1)
        current_level = conn.execute(
            "SELECT current_level FROM users_profile WHERE phone = ?", (phone,)
        ).fetchone()["current_level"]
    logger.info("Bonus video on attempt %s doubled XP %s -> %s", attempt_id, base_xp, final_xp)
    return {
        "success": True,
        "xp_details": {
            "base_xp": base_xp,
            "bonus_xp": bonus_xp,
            "final_xp": final_xp,
            "message": "XP doubled!",
        },
        "user_progress": {
            "new_total_xp": new_total,
            "new_xp_today": new_today,
            "current_level": int(current_level),
        },
    }


def get_daily_xp_history(conn, phone: str, days: int = 30) -> List[Dict]:
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT date, total_xp_today, levels_completed_today, videos_watched_today
        FROM daily_xp_summary
        WHERE phone = ?
        ORDER BY date DESC
        LIMIT ?
        """,
        (phone, days),
    )
    return [
        {
            "date": row["date"],
            "xp": row["total_xp_today"],
            "levels": row["levels_completed_today"],
            "videos": row["videos_watched_today"],
        }
        for row in cursor.fetchall()
    ]
