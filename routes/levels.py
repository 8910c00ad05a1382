from fastapi import APIRouter, Depends
from db.database import get_db
from models.attempt import StartLevelRequest, AnswerRequest, AttemptRequest
from utils.auth import current_user
from utils.attempts import (
    abandon_attempt,
    answer_question,
    get_level_history,
    get_resumable_attempt,
    start_attempt,
)

router = APIRouter()

@router.post("/start")
def start_level(payload: StartLevelRequest, phone: str = Depends(current_user), conn = Depends(get_db)):
    return start_attempt(conn, phone, payload.level)

@router.post("/answer")
def submit_answer(payload: AnswerRequest, phone: str = Depends(current_user), conn = Depends(get_db)):
    """Record one answer; the tenth answer also completes the attempt."""
    return answer_question(
        conn,
        phone,
        payload.attempt_id,
        payload.question_id,
        payload.user_answer,
        payload.time_taken_seconds,
    )

@router.post("/abandon")
def abandon_level(payload: AttemptRequest, phone: str = Depends(current_user), conn = Depends(get_db)):
    return abandon_attempt(conn, phone, payload.attempt_id)

@router.get("/history")
def level_history(phone: str = Depends(current_user), conn = Depends(get_db)):
    return {"success": True, "history": get_level_history(conn, phone)}

@router.get("/resume")
def resume_level(phone: str = Depends(current_user), conn = Depends(get_db)):
    return get_resumable_attempt(conn, phone)
