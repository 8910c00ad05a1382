from fastapi import APIRouter, Depends, Query
from typing import Optional
from db.database import get_db
from models.reel import ReelAction, ReelWatched
from utils.app_settings import get_app_settings
from utils.auth import current_user
from utils.reels import (
    get_feed,
    get_hearted_reels,
    get_reel,
    get_user_reel_stats,
    mark_started,
    mark_watched,
    toggle_heart,
)

router = APIRouter()

@router.get("/feed")
def reels_feed(limit: Optional[int] = Query(None), phone: str = Depends(current_user), conn = Depends(get_db)):
    if limit is None:
        limit = get_app_settings(conn).reels_prefetch_count
    return get_feed(conn, phone, limit).as_response()

@router.get("/stats")
def reels_stats(phone: str = Depends(current_user), conn = Depends(get_db)):
    return {"success": True, "stats": get_user_reel_stats(conn, phone)}

@router.get("/hearted")
def hearted_reels(
    limit: int = Query(50),
    offset: int = Query(0),
    phone: str = Depends(current_user),
    conn = Depends(get_db),
):
    return get_hearted_reels(conn, phone, limit, offset)

@router.get("/{reel_id}")
def reel_detail(reel_id: int, phone: str = Depends(current_user), conn = Depends(get_db)):
    return {"success": True, "reel": get_reel(conn, phone, reel_id)}

@router.post("/started")
def reel_started(payload: ReelAction, phone: str = Depends(current_user), conn = Depends(get_db)):
    return mark_started(conn, phone, payload.reel_id)

@router.post("/watched")
def reel_watched(payload: ReelWatched, phone: str = Depends(current_user), conn = Depends(get_db)):
    return mark_watched(conn, phone, payload.reel_id, payload.watch_duration_seconds)

@router.post("/heart")
def reel_heart(payload: ReelAction, phone: str = Depends(current_user), conn = Depends(get_db)):
    return toggle_heart(conn, phone, payload.reel_id)
