from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum

class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

# Both terminal states accept no further transitions.
ATTEMPT_TRANSITIONS = {
    AttemptStatus.IN_PROGRESS: frozenset({AttemptStatus.COMPLETED, AttemptStatus.ABANDONED}),
    AttemptStatus.COMPLETED: frozenset(),
    AttemptStatus.ABANDONED: frozenset(),
}

class StartLevelRequest(BaseModel):
    level: int

class AnswerRequest(BaseModel):
    attempt_id: int
    question_id: int
    user_answer: int = Field(..., ge=1, le=4)
    time_taken_seconds: Optional[int] = Field(default=None, ge=0, le=120)

class AttemptRequest(BaseModel):
    attempt_id: int
