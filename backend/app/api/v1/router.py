"""Main API v1 router combining all endpoints."""

from fastapi import APIRouter

from app.api.v1.assignments import router as assignments_router
from app.api.v1.option_sets import router as option_sets_router
from app.api.v1.progress import router as progress_router
from app.api.v1.question_banks import router as question_banks_router
from app.api.v1.questions import router as questions_router
from app.api.v1.responses import router as responses_router
from app.api.v1.sections import router as sections_router
from app.api.v1.sessions import router as sessions_router
from app.api.v1.template_questions import router as template_questions_router
from app.api.v1.templates import router as templates_router
from app.core.config import settings

# Create main v1 router
api_router = APIRouter(prefix=settings.API_V1_STR)

# Include all endpoint routers
api_router.include_router(templates_router)
api_router.include_router(sections_router)
api_router.include_router(template_questions_router)
api_router.include_router(question_banks_router)
api_router.include_router(option_sets_router)
api_router.include_router(questions_router)
api_router.include_router(sessions_router)
api_router.include_router(assignments_router)
api_router.include_router(responses_router)
api_router.include_router(progress_router)
