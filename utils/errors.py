"""Domain errors raised by the reward and progression engine.

Each error carries a stable machine code, an HTTP status for the API layer
and a ``details`` dict with the structured context a client needs to decide
its next step (current level, watched vs required percentage, ...).
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class QuizError(Exception):
    code = "SERVER_ERROR"
    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, **details: Any) -> None:
        self.message = message or self.default_message
        self.details: Dict[str, Any] = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.code, "message": self.message, **self.details}


class Unauthorized(QuizError):
    code = "UNAUTHORIZED"
    status_code = 401
    default_message = "No authenticated user on this request"


class UserNotFound(QuizError):
    code = "USER_NOT_FOUND"
    status_code = 404
    default_message = "User not found"


class InvalidInput(QuizError):
    code = "INVALID_INPUT"
    status_code = 400
    default_message = "Invalid input"


class InvalidLevel(QuizError):
    code = "INVALID_LEVEL"
    status_code = 400
    default_message = "Level must be between 1 and 100"


class LevelLocked(QuizError):
    code = "LEVEL_LOCKED"
    status_code = 400
    default_message = "Level is locked"


class QuestionsNotFound(QuizError):
    code = "QUESTIONS_NOT_FOUND"
    status_code = 404
    default_message = "No questions found for this level"


class QuestionNotFound(QuizError):
    code = "QUESTION_NOT_FOUND"
    status_code = 404
    default_message = "Question not found"


class QuestionAlreadyAnswered(QuizError):
    code = "QUESTION_ALREADY_ANSWERED"
    status_code = 409
    default_message = "Question already answered in this attempt"


class AttemptNotFound(QuizError):
    code = "ATTEMPT_NOT_FOUND"
    status_code = 404
    default_message = "Level attempt not found"


class InvalidAttemptTransition(QuizError):
    code = "ATTEMPT_NOT_IN_PROGRESS"
    status_code = 409
    default_message = "Attempt is no longer in progress"


class QuizNotCompleted(QuizError):
    code = "QUIZ_NOT_COMPLETED"
    status_code = 400
    default_message = "Complete all 10 questions before watching the video"


class VideoNotFound(QuizError):
    code = "VIDEO_NOT_FOUND"
    status_code = 404
    default_message = "Video not found"


class VideoAlreadyWatched(QuizError):
    code = "VIDEO_ALREADY_WATCHED"
    status_code = 400
    default_message = "Video already watched for this attempt"


class InsufficientWatchTime(QuizError):
    code = "INSUFFICIENT_WATCH_TIME"
    status_code = 400
    default_message = "Watch more of the video to continue"


class InvalidReferralCode(QuizError):
    code = "INVALID_REFERRAL_CODE"
    status_code = 400
    default_message = "Invalid referral code"


class SelfReferralNotAllowed(QuizError):
    code = "SELF_REFERRAL_NOT_ALLOWED"
    status_code = 400
    default_message = "You cannot use your own referral code"


class AlreadyReferred(QuizError):
    code = "ALREADY_REFERRED"
    status_code = 409
    default_message = "A referral code has already been applied to this account"


class ReelNotFound(QuizError):
    code = "REEL_NOT_FOUND"
    status_code = 404
    default_message = "Reel not found or inactive"


class InvalidPagination(QuizError):
    code = "INVALID_LIMIT"
    status_code = 400
    default_message = "Limit must be between 1 and 100"


class RateLimitExceeded(QuizError):
    code = "RATE_LIMIT_EXCEEDED"
    status_code = 429
    default_message = "Too many requests, slow down"


def check_pagination(limit: int, offset: int, max_limit: int = 100) -> None:
    if limit < 1 or limit > max_limit:
        raise InvalidPagination(f"Limit must be between 1 and {max_limit}")
    if offset < 0:
        err = InvalidPagination("Offset must be 0 or greater")
        err.code = "INVALID_OFFSET"
        raise err
