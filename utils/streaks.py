from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional

from db.database import transaction
from utils.timezone import now_iso, parse_date, previous_day, today as canonical_today

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreakUpdate:
    updated: bool
    current_streak: int
    longest_streak: int
    streak_broken: bool = False


def _ensure_record(conn, phone: str) -> None:
    conn.execute(
        """
        INSERT INTO streak_tracking (phone, current_streak, longest_streak, updated_at)
        VALUES (?, 0, 0, ?)
        ON CONFLICT(phone) DO NOTHING
        """,
        (phone, now_iso()),
    )


def update_streak(conn, phone: str, today: Optional[date] = None) -> StreakUpdate:
    """Count today's activity towards the user's streak.

    Only the first call of a calendar day changes anything. Activity on the
    day after the last recorded one extends the streak; any longer gap
    restarts it at 1.
    """
    today = today or canonical_today()
    with transaction(conn):
        _ensure_record(conn, phone)
        row = conn.execute(
            "SELECT current_streak, longest_streak, last_activity_date FROM streak_tracking WHERE phone = ?",
            (phone,),
        ).fetchone()
        current = int(row["current_streak"])
        longest = int(row["longest_streak"])
        last_activity = parse_date(row["last_activity_date"])

        if last_activity is not None and last_activity >= today:
            return StreakUpdate(False, current, longest)

        streak_broken = False
        if last_activity is not None and last_activity == previous_day(today):
            current += 1
        else:
            streak_broken = last_activity is not None and current > 0
            current = 1
        longest = max(longest, current)
        conn.execute(
            """
            UPDATE streak_tracking
            SET current_streak = ?, longest_streak = ?, last_activity_date = ?, updated_at = ?
            WHERE phone = ?
            """,
            (current, longest, today.isoformat(), now_iso(), phone),
        )
    if streak_broken:
        logger.info("Streak for %s broken, restarting at 1", phone)
    return StreakUpdate(True, current, longest, streak_broken)


def get_streak(conn, phone: str) -> Dict:
    cursor = conn.cursor()
    cursor.execute(
        "SELECT current_streak, longest_streak, last_activity_date FROM streak_tracking WHERE phone = ?",
        (phone,),
    )
    row = cursor.fetchone()
    if not row:
        return {"current_streak": 0, "longest_streak": 0, "last_activity_date": None}
    return {
        "current_streak": row["current_streak"],
        "longest_streak": row["longest_streak"],
        "last_activity_date": row["last_activity_date"],
    }
