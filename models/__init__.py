from .user import UserCreate, UserUpdate, ReferralApply
from .attempt import AttemptStatus, StartLevelRequest, AnswerRequest, AttemptRequest
from .video import VideoComplete, LifelineRestore
from .reel import ReelAction, ReelWatched

__all__ = [
    'UserCreate', 'UserUpdate', 'ReferralApply',
    'AttemptStatus', 'StartLevelRequest', 'AnswerRequest', 'AttemptRequest',
    'VideoComplete', 'LifelineRestore',
    'ReelAction', 'ReelWatched',
]
