from fastapi import APIRouter
from app.api.routes import ai, ai_settings, health, projects, test_cases

api_router = APIRouter()

# Include all route modules
api_router.include_router(health.router)
api_router.include_router(projects.router)
api_router.include_router(test_cases.router)
api_router.include_router(ai.router)
api_router.include_router(ai_settings.router)
