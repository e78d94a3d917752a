"""Route handlers for the Web API."""

from gradeflow.web.routes.health import router as health_router
from gradeflow.web.routes.practice import router as practice_router
from gradeflow.web.routes.skills import router as skills_router
from gradeflow.web.routes.grading import router as grading_router
from gradeflow.web.routes.ocr import router as ocr_router
from gradeflow.web.routes.chat import router as chat_router
from gradeflow.web.routes.concepts import router as concepts_router

__all__ = [
    "health_router",
    "practice_router",
    "skills_router",
    "grading_router",
    "ocr_router",
    "chat_router",
    "concepts_router",
]
