"""Route handlers for the Web API."""

from tradebench.web.routes.auth import router as auth_router
from tradebench.web.routes.bookmarks import router as bookmarks_router
from tradebench.web.routes.health import router as health_router
from tradebench.web.routes.progress import router as progress_router
from tradebench.web.routes.questions import router as questions_router
from tradebench.web.routes.quiz_sessions import router as quiz_sessions_router
from tradebench.web.routes.study_guides import router as study_guides_router
from tradebench.web.routes.years import router as years_router

__all__ = [
    "auth_router",
    "bookmarks_router",
    "health_router",
    "progress_router",
    "questions_router",
    "quiz_sessions_router",
    "study_guides_router",
    "years_router",
]
