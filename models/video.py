from pydantic import BaseModel, Field

class VideoComplete(BaseModel):
    attempt_id: int
    video_id: int
    watch_duration_seconds: int = Field(..., ge=0)

class LifelineRestore(VideoComplete):
    pass
