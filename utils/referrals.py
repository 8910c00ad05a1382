"""Referral bonuses.

A user can be referred at most once for the lifetime of the account. The
pre-check on ``referral_tracking`` gives a friendly error; the UNIQUE
constraint on ``referee_phone`` is what actually makes the grant race-safe.
"""
from __future__ import annotations

import logging
import sqlite3
from typing import Dict, List, Optional

from db.database import transaction
from utils.app_settings import get_app_settings
from utils.errors import (
    AlreadyReferred,
    InvalidReferralCode,
    SelfReferralNotAllowed,
    UserNotFound,
    check_pagination,
)
from utils.timezone import now_iso
from utils.xp import apply_xp

logger = logging.getLogger(__name__)


def apply_referral(conn, referee_phone: str, referral_code: Optional[str]) -> Dict:
    """Grant the referral bonus to both sides. A missing code is a no-op."""
    code = (referral_code or "").strip()
    if not code:
        return {"applied": False}
    with transaction(conn):
        referrer = conn.execute(
            "SELECT phone, name FROM users_profile WHERE referral_code = ?",
            (code,),
        ).fetchone()
        if referrer is None:
            raise InvalidReferralCode()
        if referrer["phone"] == referee_phone:
            raise SelfReferralNotAllowed()
        existing = conn.execute(
            "SELECT 1 FROM referral_tracking WHERE referee_phone = ?",
            (referee_phone,),
        ).fetchone()
        if existing is not None:
            raise AlreadyReferred()

        bonus = get_app_settings(conn).referral_bonus_xp
        try:
            conn.execute(
                """
                INSERT INTO referral_tracking (
                    referrer_phone, referee_phone, referral_code, xp_granted, status, referral_date
                )
                VALUES (?, ?, ?, ?, 'active', ?)
                """,
                (referrer["phone"], referee_phone, code, bonus, now_iso()),
            )
        except sqlite3.IntegrityError as exc:
            raise AlreadyReferred() from exc
        updated = conn.execute(
            "UPDATE users_profile SET referred_by = ?, updated_at = ? WHERE phone = ?",
            (code, now_iso(), referee_phone),
        )
        if updated.rowcount != 1:
            raise UserNotFound()
        apply_xp(conn, referrer["phone"], bonus)
        apply_xp(conn, referee_phone, bonus)
    logger.info("Referral %s -> %s applied, %s XP each", referrer["phone"], referee_phone, bonus)
    return {
        "applied": True,
        "referrer_name": referrer["name"],
        "xp_granted": bonus,
    }


def get_referral_stats(conn, phone: str) -> Dict:
    cursor = conn.cursor()
    cursor.execute(
        "SELECT referral_code, referred_by FROM users_profile WHERE phone = ?",
        (phone,),
    )
    user = cursor.fetchone()
    if not user:
        raise UserNotFound()
    cursor.execute(
        """
        SELECT COUNT(*) AS total_referrals, COALESCE(SUM(xp_granted), 0) AS total_xp
        FROM referral_tracking
        WHERE referrer_phone = ? AND status = 'active'
        """,
        (phone,),
    )
    totals = cursor.fetchone()
    return {
        "referral_code": user["referral_code"],
        "total_referrals": totals["total_referrals"],
        "total_xp_earned": totals["total_xp"],
        "was_referred": user["referred_by"] is not None,
    }


def get_referred_users(conn, phone: str, limit: int = 20, offset: int = 0) -> List[Dict]:
    check_pagination(limit, offset)
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT u.name, u.district, u.state, r.xp_granted, r.referral_date
        FROM referral_tracking r
        JOIN users_profile u ON u.phone = r.referee_phone
        WHERE r.referrer_phone = ?
        ORDER BY r.referral_date DESC, r.id DESC
        LIMIT ? OFFSET ?
        """,
        (phone, limit, offset),
    )
    return [dict(row) for row in cursor.fetchall()]
