from fastapi import APIRouter, Depends, Query
from typing import Optional
from db.database import get_db
from models.video import VideoComplete, LifelineRestore
from utils.auth import current_user
from utils.lifelines import restore_lifelines
from utils.xp import complete_video, get_videos_for_level

router = APIRouter()

@router.get("/url")
def video_url(
    level: int = Query(...),
    category: Optional[str] = Query(None),
    phone: str = Depends(current_user),
    conn = Depends(get_db),
):
    videos = get_videos_for_level(conn, level, category)
    return {"success": True, "video": videos[0], "videos": videos}

@router.post("/complete")
def video_complete(payload: VideoComplete, phone: str = Depends(current_user), conn = Depends(get_db)):
    """Double the attempt's XP after a qualifying watch."""
    return complete_video(conn, phone, payload.attempt_id, payload.video_id, payload.watch_duration_seconds)

@router.post("/restore-lifelines")
def video_restore_lifelines(payload: LifelineRestore, phone: str = Depends(current_user), conn = Depends(get_db)):
    return restore_lifelines(conn, phone, payload.attempt_id, payload.video_id, payload.watch_duration_seconds)
