"""Life cycle of a quiz attempt.

An attempt is created in_progress, collects exactly one response per
question, and becomes completed as a side effect of the tenth answer, inside
the same transaction that records that answer: base XP is granted and the
level-unlock rule is evaluated right there. An attempt can instead be
abandoned explicitly. Terminal attempts reject further answers and
transitions.
"""
from __future__ import annotations

import logging
import sqlite3
from typing import Dict, Optional

from db.database import execute_returning, transaction
from models.attempt import ATTEMPT_TRANSITIONS, AttemptStatus
from utils.app_settings import get_app_settings
from utils.errors import (
    AttemptNotFound,
    InvalidAttemptTransition,
    InvalidLevel,
    LevelLocked,
    QuestionAlreadyAnswered,
    QuestionNotFound,
    UserNotFound,
)
from utils.lifelines import deduct_lifeline, get_lifeline_status
from utils.questions import (
    QUESTIONS_PER_LEVEL,
    correct_option,
    get_question,
    present_question,
    question_in_tier,
    resolve_level_questions,
)
from utils.timezone import now_iso, today_iso
from utils.xp import MAX_LEVEL, apply_xp, calculate_base_xp, evaluate_unlock, xp_per_correct

logger = logging.getLogger(__name__)


def check_transition(current: str, target: AttemptStatus) -> AttemptStatus:
    """Validate a status change against the attempt state machine."""
    current_status = AttemptStatus(current)
    if target not in ATTEMPT_TRANSITIONS[current_status]:
        raise InvalidAttemptTransition(
            f"Attempt is already {current_status.value}",
            completion_status=current_status.value,
        )
    return target


def _load_attempt(conn, phone: str, attempt_id: int) -> Dict:
    row = conn.execute(
        "SELECT * FROM level_attempts WHERE id = ? AND phone = ?",
        (attempt_id, phone),
    ).fetchone()
    if row is None:
        raise AttemptNotFound()
    return dict(row)


def is_first_attempt(conn, phone: str, level: int) -> bool:
    """True when the user has no non-abandoned attempt at this level."""
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT COUNT(*) FROM level_attempts
        WHERE phone = ? AND level = ? AND completion_status != ?
        """,
        (phone, level, AttemptStatus.ABANDONED.value),
    )
    return int(cursor.fetchone()[0]) == 0


def start_attempt(conn, phone: str, level: int) -> Dict:
    if level < 1 or level > MAX_LEVEL:
        raise InvalidLevel()
    with transaction(conn):
        user = conn.execute(
            "SELECT current_level, medium FROM users_profile WHERE phone = ?",
            (phone,),
        ).fetchone()
        if user is None:
            raise UserNotFound()
        current_level = int(user["current_level"])
        if level > current_level:
            raise LevelLocked(
                f"Complete level {current_level} first to unlock level {level}",
                current_level=current_level,
            )
        first_attempt = is_first_attempt(conn, phone, level)
        tier, questions = resolve_level_questions(conn, level, user["medium"] or "english")
        lifelines = get_app_settings(conn).lifelines_per_quiz
        stamp = now_iso()
        cursor = conn.execute(
            """
            INSERT INTO level_attempts (
                phone, level, attempt_date, is_first_attempt, lifelines_remaining,
                question_medium, completion_status, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (phone, level, today_iso(), int(first_attempt), lifelines, tier,
             AttemptStatus.IN_PROGRESS.value, stamp, stamp),
        )
        attempt_id = cursor.lastrowid
    logger.info("User %s started level %s (attempt %s, first=%s)", phone, level, attempt_id, first_attempt)
    return {
        "success": True,
        "attempt_id": attempt_id,
        "level": level,
        "is_first_attempt": first_attempt,
        "xp_per_correct": xp_per_correct(first_attempt),
        "lifelines_remaining": lifelines,
        "questions": [present_question(q) for q in questions],
    }


def _complete_attempt(conn, phone: str, attempt: Dict, correct_answers: int, accuracy: float) -> Dict:
    """Close an attempt after its last answer; runs inside the answer's transaction."""
    check_transition(attempt["completion_status"], AttemptStatus.COMPLETED)
    first_attempt = bool(attempt["is_first_attempt"])
    base_xp = calculate_base_xp(correct_answers, first_attempt)
    closed = conn.execute(
        """
        UPDATE level_attempts
        SET completion_status = ?, xp_earned_base = ?, xp_earned_final = ?, updated_at = ?
        WHERE id = ? AND completion_status = ?
        """,
        (AttemptStatus.COMPLETED.value, base_xp, base_xp, now_iso(),
         attempt["id"], AttemptStatus.IN_PROGRESS.value),
    )
    if closed.rowcount != 1:
        raise InvalidAttemptTransition(completion_status=AttemptStatus.COMPLETED.value)
    apply_xp(conn, phone, base_xp, levels_completed=1, questions_attempted=QUESTIONS_PER_LEVEL)
    new_level = evaluate_unlock(conn, phone, attempt["level"], first_attempt, accuracy)
    logger.info(
        "Attempt %s completed: %s/%s correct, %s XP, unlocked=%s",
        attempt["id"], correct_answers, QUESTIONS_PER_LEVEL, base_xp, new_level is not None,
    )
    result = {
        "base_xp_earned": base_xp,
        "potential_bonus_xp": base_xp,
        "level_unlocked": new_level is not None,
        "can_watch_video_to_double_xp": True,
    }
    if new_level is not None:
        result["new_current_level"] = new_level
        result["message"] = f"Level completed! Watch video to double your {base_xp} XP."
    else:
        result["message"] = (
            f"Quiz completed with {accuracy}% accuracy. Watch video to double your {base_xp} XP."
        )
    return result


def answer_question(
    conn,
    phone: str,
    attempt_id: int,
    question_id: int,
    user_answer: int,
    time_taken_seconds: Optional[int] = None,
) -> Dict:
    with transaction(conn):
        attempt = _load_attempt(conn, phone, attempt_id)
        if attempt["completion_status"] != AttemptStatus.IN_PROGRESS.value:
            raise InvalidAttemptTransition(
                f"Attempt is already {attempt['completion_status']}",
                completion_status=attempt["completion_status"],
            )
        question = get_question(conn, question_id)
        if question["level"] != attempt["level"]:
            raise QuestionNotFound(f"Question {question_id} is not part of level {attempt['level']}")
        if not question_in_tier(question, attempt["question_medium"]):
            raise QuestionNotFound(f"Question {question_id} was not served in this attempt")
        correct_index = correct_option(question)
        if correct_index is None:
            logger.warning("Question %s has no option marked correct", question_id)
        is_correct = user_answer == correct_index

        try:
            conn.execute(
                """
                INSERT INTO question_responses (
                    attempt_id, phone, question_id, level, user_answer,
                    is_correct, time_taken_seconds, answered_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (attempt_id, phone, question_id, attempt["level"], user_answer,
                 int(is_correct), time_taken_seconds, now_iso()),
            )
        except sqlite3.IntegrityError as exc:
            raise QuestionAlreadyAnswered() from exc

        progress = execute_returning(
            conn,
            """
            UPDATE level_attempts
            SET questions_attempted = questions_attempted + 1,
                correct_answers = correct_answers + ?,
                accuracy_percentage = ROUND((correct_answers + ?) * 100.0 / (questions_attempted + 1), 2),
                updated_at = ?
            WHERE id = ? AND completion_status = ? AND questions_attempted < ?
            RETURNING questions_attempted, correct_answers, accuracy_percentage
            """,
            (int(is_correct), int(is_correct), now_iso(), attempt_id,
             AttemptStatus.IN_PROGRESS.value, QUESTIONS_PER_LEVEL),
        )
        if progress is None:
            raise InvalidAttemptTransition(completion_status=attempt["completion_status"])
        questions_attempted = int(progress["questions_attempted"])
        correct_answers = int(progress["correct_answers"])
        accuracy = float(progress["accuracy_percentage"])

        if is_correct:
            lifelines = get_lifeline_status(conn, attempt_id)
        else:
            lifelines = deduct_lifeline(conn, attempt_id)

        quiz_result = None
        if questions_attempted == QUESTIONS_PER_LEVEL:
            quiz_result = _complete_attempt(conn, phone, attempt, correct_answers, accuracy)

    response = {
        "success": True,
        "is_correct": is_correct,
        "correct_answer": correct_index,
        "explanation_text": question["explanation_text"],
        "explanation_url": question["explanation_url"],
        "progress": {
            "questions_attempted": questions_attempted,
            "correct_answers": correct_answers,
            "accuracy_so_far": accuracy,
        },
        "lifelines": lifelines.as_response(),
        "quiz_completed": quiz_result is not None,
    }
    if quiz_result is not None:
        response["quiz_result"] = quiz_result
    return response


def abandon_attempt(conn, phone: str, attempt_id: int) -> Dict:
    with transaction(conn):
        attempt = _load_attempt(conn, phone, attempt_id)
        check_transition(attempt["completion_status"], AttemptStatus.ABANDONED)
        updated = conn.execute(
            """
            UPDATE level_attempts
            SET completion_status = ?, updated_at = ?
            WHERE id = ? AND completion_status = ?
            """,
            (AttemptStatus.ABANDONED.value, now_iso(), attempt_id, AttemptStatus.IN_PROGRESS.value),
        )
        if updated.rowcount != 1:
            raise InvalidAttemptTransition(completion_status=attempt["completion_status"])
    logger.info("Attempt %s abandoned by %s", attempt_id, phone)
    return {"success": True, "message": "Level marked as abandoned"}


def get_level_history(conn, phone: str):
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT
            level,
            COUNT(*) AS attempts,
            MAX(accuracy_percentage) AS best_accuracy,
            SUM(xp_earned_final) AS total_xp_from_level,
            MAX(video_watched) AS video_watched
        FROM level_attempts
        WHERE phone = ? AND completion_status = ?
        GROUP BY level
        ORDER BY level ASC
        """,
        (phone, AttemptStatus.COMPLETED.value),
    )
    return [
        {
            "level": row["level"],
            "attempts": row["attempts"],
            "best_accuracy": row["best_accuracy"],
            "total_xp_from_level": row["total_xp_from_level"],
            "video_watched": bool(row["video_watched"]),
        }
        for row in cursor.fetchall()
    ]


def get_resumable_attempt(conn, phone: str) -> Dict:
    cursor = conn.cursor()
    cursor.execute(
        """
        SELECT id, level, questions_attempted, lifelines_remaining
        FROM level_attempts
        WHERE phone = ? AND completion_status = ? AND questions_attempted < ?
        ORDER BY created_at DESC, id DESC
        LIMIT 1
        """,
        (phone, AttemptStatus.IN_PROGRESS.value, QUESTIONS_PER_LEVEL),
    )
    row = cursor.fetchone()
    if not row:
        return {"success": True, "has_incomplete_level": False}
    return {
        "success": True,
        "has_incomplete_level": True,
        "resume_data": {
            "attempt_id": row["id"],
            "level": row["level"],
            "questions_attempted": row["questions_attempted"],
            "questions_remaining": QUESTIONS_PER_LEVEL - row["questions_attempted"],
            "lifelines_remaining": row["lifelines_remaining"],
        },
    }
