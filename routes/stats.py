from fastapi import APIRouter, Depends, Query
from typing import Optional
from db.database import get_db
from utils.app_settings import get_online_count
from utils.auth import current_user
from utils.leaderboard import daily_leaderboard, get_user_stats
from utils.streaks import get_streak
from utils.xp import get_daily_xp_history

router = APIRouter()

@router.get("/leaderboard/daily")
def leaderboard_daily(
    date: Optional[str] = Query(None),
    phone: str = Depends(current_user),
    conn = Depends(get_db),
):
    return daily_leaderboard(conn, phone, date)

@router.get("/daily-xp")
def daily_xp(days: int = Query(30, ge=1, le=365), phone: str = Depends(current_user), conn = Depends(get_db)):
    return {"success": True, "history": get_daily_xp_history(conn, phone, days)}

@router.get("/streak")
def streak(phone: str = Depends(current_user), conn = Depends(get_db)):
    return {"success": True, "streak": get_streak(conn, phone)}

@router.get("/user")
def user_stats(phone: str = Depends(current_user), conn = Depends(get_db)):
    return get_user_stats(conn, phone)

@router.get("/online-count")
def online_count(conn = Depends(get_db)):
    """Public display counter; no identity required."""
    return {"success": True, "online_count": get_online_count(conn)}
