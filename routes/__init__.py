# Routes package __init__.py - re-exports routers for main.py convenience
from .users import router as users_router
from .levels import router as levels_router
from .video import router as video_router
from .reels import router as reels_router
from .stats import router as stats_router

__all__ = ['users_router', 'levels_router', 'video_router', 'reels_router', 'stats_router']
