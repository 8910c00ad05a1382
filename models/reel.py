from pydantic import BaseModel, Field

class ReelAction(BaseModel):
    reel_id: int

class ReelWatched(ReelAction):
    watch_duration_seconds: int = Field(..., ge=0)
