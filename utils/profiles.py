from __future__ import annotations

import logging
import random
import sqlite3
from datetime import timedelta
from typing import Dict, Optional

from db.database import transaction
from utils.errors import InvalidInput, QuizError, UserNotFound
from utils.referrals import apply_referral
from utils.streaks import get_streak
from utils.timezone import now, now_iso, today_iso

logger = logging.getLogger(__name__)

MEDIUMS = ("hindi", "english")
EDITABLE_FIELDS = ("name", "district", "state", "medium", "profile_image_url")
REFERRAL_CODE_ATTEMPTS = 10
ACTIVITY_TOUCH_SECONDS = 60


def generate_referral_code(conn) -> str:
    """Random 5-digit code not yet assigned to any user."""
    for _ in range(REFERRAL_CODE_ATTEMPTS):
        code = str(random.randint(10000, 99999))
        taken = conn.execute(
            "SELECT 1 FROM users_profile WHERE referral_code = ?", (code,)
        ).fetchone()
        if taken is None:
            return code
    raise RuntimeError("Could not allocate a unique referral code")


def _validate_medium(medium: Optional[str]) -> str:
    value = (medium or "english").strip().lower()
    if value not in MEDIUMS:
        raise InvalidInput("Medium must be 'hindi' or 'english'", field="medium")
    return value


def _insert_profile(conn, phone: str, name, district, state, medium: str) -> str:
    stamp = now_iso()
    for _ in range(REFERRAL_CODE_ATTEMPTS):
        code = generate_referral_code(conn)
        try:
            conn.execute(
                """
                INSERT INTO users_profile (
                    phone, name, district, state, medium, referral_code,
                    date_joined, last_active_at, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (phone, name, district, state, medium, code, today_iso(), stamp, stamp, stamp),
            )
            return code
        except sqlite3.IntegrityError:
            # Lost a race for the code; the phone itself was checked under the write lock.
            logger.warning("Referral code %s collided, retrying", code)
    raise RuntimeError("Could not allocate a unique referral code")


def create_user(
    conn,
    phone: str,
    name: Optional[str] = None,
    district: Optional[str] = None,
    state: Optional[str] = None,
    medium: Optional[str] = None,
    referral_code: Optional[str] = None,
) -> Dict:
    """Create a profile, or return the existing one for a known phone.

    The referral is applied in its own savepoint: a bad code is reported in
    the result but the account is still created.
    """
    phone = (phone or "").strip()
    if not phone:
        raise InvalidInput("Phone number is required", field="phone")
    medium = _validate_medium(medium)
    referral = {"applied": False}
    with transaction(conn):
        existing = conn.execute(
            "SELECT 1 FROM users_profile WHERE phone = ?", (phone,)
        ).fetchone()
        if existing is not None:
            is_new_user = False
        else:
            is_new_user = True
            _insert_profile(conn, phone, name, district, state, medium)
            conn.execute(
                """
                INSERT INTO streak_tracking (phone, current_streak, longest_streak, updated_at)
                VALUES (?, 0, 0, ?)
                ON CONFLICT(phone) DO NOTHING
                """,
                (phone, now_iso()),
            )
            if referral_code:
                try:
                    referral = apply_referral(conn, phone, referral_code)
                except QuizError as exc:
                    logger.warning("Referral at signup for %s rejected: %s", phone, exc.code)
                    referral = {"applied": False, "error": exc.code, "message": exc.message}
    if is_new_user:
        logger.info("Registered user %s", phone)
    return {
        "success": True,
        "is_new_user": is_new_user,
        "user": get_profile(conn, phone),
        "referral": referral,
    }


def get_profile(conn, phone: str) -> Dict:
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT phone, name, district, state, medium, referral_code, referred_by,
               profile_image_url, date_joined, xp_total, current_level,
               total_ads_watched, videos_watched, last_active_at
        FROM users_profile
        WHERE phone = ?
        """,
        (phone,),
    )
    row = cursor.fetchone()
    if not row:
        raise UserNotFound()
    profile = dict(row)
    cursor.execute(
        "SELECT total_xp_today FROM daily_xp_summary WHERE phone = ? AND date = ?",
        (phone, today_iso()),
    )
    today_row = cursor.fetchone()
    profile["today_xp"] = today_row["total_xp_today"] if today_row else 0
    profile["streak"] = get_streak(conn, phone)
    return profile


def update_profile(conn, phone: str, fields: Dict) -> Dict:
    changes = {key: value for key, value in fields.items() if key in EDITABLE_FIELDS and value is not None}
    if not changes:
        raise InvalidInput("No fields to update")
    if "medium" in changes:
        changes["medium"] = _validate_medium(changes["medium"])
    assignments = ", ".join(f"{key} = ?" for key in changes)
    with transaction(conn):
        updated = conn.execute(
            f"UPDATE users_profile SET {assignments}, updated_at = ? WHERE phone = ?",
            (*changes.values(), now_iso(), phone),
        )
        if updated.rowcount != 1:
            raise UserNotFound()
    return get_profile(conn, phone)


def touch_activity(conn, phone: str) -> bool:
    """Record that the user is active now. Writes at most once a minute."""
    current = now()
    cutoff = current - timedelta(seconds=ACTIVITY_TOUCH_SECONDS)
    updated = conn.execute(
        """
        UPDATE users_profile SET last_active_at = ?
        WHERE phone = ? AND (last_active_at IS NULL OR last_active_at < ?)
        """,
        (current.isoformat(sep=" ", timespec="seconds"), phone,
         cutoff.isoformat(sep=" ", timespec="seconds")),
    )
    return updated.rowcount == 1

