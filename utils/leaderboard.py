from __future__ import annotations

from typing import Dict, Optional

from config import get_config_value
from utils.errors import InvalidInput
from utils.timezone import parse_date, today_iso


def _resolve_date(value) -> str:
    if value is None or value == "":
        return today_iso()
    try:
        return parse_date(value).isoformat()
    except ValueError as exc:
        raise InvalidInput("Date must be in YYYY-MM-DD format", field="date") from exc


def daily_leaderboard(conn, phone: str, day=None, top_n: Optional[int] = None) -> Dict:
    """Top users by XP earned on one day, plus the caller's own rank.

    Rank is 1 + the number of users with strictly more XP that day, so tied
    users share a rank. Among ties, whoever reached the total first is listed
    first.
    """
    day_iso = _resolve_date(day)
    top_n = top_n or get_config_value("leaderboard", "top_n", 50)
    cursor = conn.cursor()

    cursor.execute(
        "SELECT total_xp_today FROM daily_xp_summary WHERE phone = ? AND date = ?",
        (phone, day_iso),
    )
    own = cursor.fetchone()
    if own is None:
        user_stats = {"rank": None, "today_xp": 0}
    else:
        cursor.execute(
            "SELECT COUNT(*) FROM daily_xp_summary WHERE date = ? AND total_xp_today > ?",
            (day_iso, own["total_xp_today"]),
        )
        user_stats = {"rank": int(cursor.fetchone()[0]) + 1, "today_xp": own["total_xp_today"]}

    cursor.execute(
        """
        SELECT
            d.phone,
            u.name,
            u.district,
            u.profile_image_url,
            d.total_xp_today,
            RANK() OVER (ORDER BY d.total_xp_today DESC) AS rank
        FROM daily_xp_summary d
        JOIN users_profile u ON u.phone = d.phone
        WHERE d.date = ?
        ORDER BY d.total_xp_today DESC, d.updated_at ASC, d.phone ASC
        LIMIT ?
        """,
        (day_iso, top_n),
    )
    top = [
        {
            "rank": row["rank"],
            "name": row["name"],
            "district": row["district"],
            "profile_image_url": row["profile_image_url"],
            "today_xp": row["total_xp_today"],
            "is_current_user": row["phone"] == phone,
        }
        for row in cursor.fetchall()
    ]
    return {"success": True, "date": day_iso, "user_stats": user_stats, "top_50": top}


def get_user_stats(conn, phone: str) -> Dict:
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT
            COUNT(*) AS total_attempts,
            COUNT(DISTINCT CASE WHEN completion_status = 'completed' THEN level END) AS levels_completed,
            COALESCE(SUM(questions_attempted), 0) AS questions_attempted,
            COALESCE(SUM(correct_answers), 0) AS correct_answers,
            COALESCE(SUM(video_watched), 0) AS bonus_videos_watched,
            COALESCE(SUM(xp_earned_final), 0) AS xp_from_levels
        FROM level_attempts
        WHERE phone = ?
        """,
        (phone,),
    )
    stats = dict(cursor.fetchone())
    answered = stats["questions_attempted"]
    stats["overall_accuracy"] = round(stats["correct_answers"] / answered * 100, 2) if answered else 0.0
    cursor.execute(
        "SELECT xp_total, current_level, videos_watched FROM users_profile WHERE phone = ?",
        (phone,),
    )
    profile = cursor.fetchone()
    if profile:
        stats["xp_total"] = profile["xp_total"]
        stats["current_level"] = profile["current_level"]
        stats["reels_watched"] = profile["videos_watched"]
    return {"success": True, "stats": stats}
