from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

from db.database import execute_returning, transaction
from utils.app_settings import get_app_settings
from utils.errors import AttemptNotFound, InvalidAttemptTransition
from utils.timezone import now_iso
from utils.xp import get_promotional_video, validate_watch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LifelineStatus:
    lifelines_remaining: int
    lifelines_used: int

    @property
    def can_continue(self) -> bool:
        # Running out never blocks answering; it only enables the restore offer.
        return self.lifelines_remaining >= 0

    @property
    def can_watch_video(self) -> bool:
        return self.lifelines_remaining == 0

    def as_response(self) -> Dict:
        return {
            "remaining": self.lifelines_remaining,
            "used": self.lifelines_used,
            "can_continue": self.can_continue,
            "can_watch_video_to_restore": self.can_watch_video,
        }


def deduct_lifeline(conn, attempt_id: int) -> LifelineStatus:
    """Consume one lifeline for a wrong answer, floored at zero."""
    row = execute_returning(
        conn,
        """
        UPDATE level_attempts
        SET lifelines_remaining = MAX(lifelines_remaining - 1, 0),
            lifelines_used = lifelines_used + 1,
            updated_at = ?
        WHERE id = ?
        RETURNING lifelines_remaining, lifelines_used
        """,
        (now_iso(), attempt_id),
    )
    if row is None:
        raise AttemptNotFound()
    return LifelineStatus(int(row["lifelines_remaining"]), int(row["lifelines_used"]))


def get_lifeline_status(conn, attempt_id: int) -> LifelineStatus:
    cursor = conn.cursor()
    cursor.execute(
        "SELECT lifelines_remaining, lifelines_used FROM level_attempts WHERE id = ?",
        (attempt_id,),
    )
    row = cursor.fetchone()
    if not row:
        raise AttemptNotFound()
    return LifelineStatus(int(row["lifelines_remaining"]), int(row["lifelines_used"]))


def restore_lifelines(conn, phone: str, attempt_id: int, video_id: int, watch_duration_seconds: int) -> Dict:
    """Refill an in-progress attempt's lifelines after a qualifying video watch. Grants no XP."""
    with transaction(conn):
        video = get_promotional_video(conn, video_id)
        validate_watch(watch_duration_seconds, video["duration_seconds"], reason="restore lifelines")
        attempt = conn.execute(
            "SELECT level, completion_status FROM level_attempts WHERE id = ? AND phone = ?",
            (attempt_id, phone),
        ).fetchone()
        if attempt is None:
            raise AttemptNotFound()
        if attempt["completion_status"] != "in_progress":
            raise InvalidAttemptTransition(
                "Lifelines can only be restored while the quiz is in progress",
                completion_status=attempt["completion_status"],
            )
        lifeline_count = get_app_settings(conn).lifelines_per_quiz
        stamp = now_iso()
        conn.execute(
            """
            UPDATE level_attempts
            SET lifelines_remaining = ?,
                lifeline_videos_watched = lifeline_videos_watched + 1,
                updated_at = ?
            WHERE id = ?
            """,
            (lifeline_count, stamp, attempt_id),
        )
        conn.execute(
            """
            INSERT INTO lifeline_videos_watched (
                phone, attempt_id, level, video_id, video_url,
                watch_duration_seconds, lifelines_restored, watch_completed_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (phone, attempt_id, attempt["level"], video_id, video["video_url"],
             watch_duration_seconds, lifeline_count, stamp),
        )
    logger.info("Restored %s lifelines on attempt %s", lifeline_count, attempt_id)
    return {
        "success": True,
        "lifelines_restored": lifeline_count,
        "lifelines_remaining": lifeline_count,
        "message": f"All {lifeline_count} lifelines restored!",
    }
