"""Route modules for the Typing Tracker backend and agent APIs."""

from .activity import router as activity_router
from .editor import router as editor_router

__all__ = [
    'activity_router',
    'editor_router',
]
