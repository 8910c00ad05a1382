"""Request identity.

Credentials are checked by the gateway in front of this service, which
forwards the authenticated phone number in ``X-User-Phone`` and its own rate
limit budget in ``X-RateLimit-Remaining``. This module trusts both headers.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request

from db.database import get_db
from utils.errors import RateLimitExceeded, Unauthorized
from utils.profiles import touch_activity
from utils.streaks import update_streak

logger = logging.getLogger(__name__)

USER_HEADER = "X-User-Phone"
RATE_LIMIT_HEADER = "X-RateLimit-Remaining"
RETRY_AFTER_HEADER = "Retry-After"


def get_request_phone(request: Request) -> Optional[str]:
    phone = (request.headers.get(USER_HEADER) or "").strip()
    return phone or None


def check_rate_limit(request: Request) -> None:
    remaining = request.headers.get(RATE_LIMIT_HEADER)
    if remaining is None:
        return None
    try:
        exhausted = int(remaining) <= 0
    except ValueError:
        logger.warning("Ignoring malformed %s header: %r", RATE_LIMIT_HEADER, remaining)
        return None
    if exhausted:
        retry_after = request.headers.get(RETRY_AFTER_HEADER)
        if retry_after is not None:
            raise RateLimitExceeded(retry_after=retry_after)
        raise RateLimitExceeded()


def current_user(request: Request, conn=Depends(get_db)) -> str:
    """Resolve the caller and record their activity for today."""
    check_rate_limit(request)
    phone = get_request_phone(request)
    if not phone:
        raise Unauthorized()
    known = conn.execute("SELECT 1 FROM users_profile WHERE phone = ?", (phone,)).fetchone()
    if known is None:
        raise Unauthorized("Unknown user, register first")
    touch_activity(conn, phone)
    update_streak(conn, phone)
    return phone
