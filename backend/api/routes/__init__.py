"""API Routes."""

from fastapi import APIRouter

from .billing import router as billing_router
from .covers import router as covers_router
from .health import router as health_router
from .projects import router as projects_router
from .users import router as users_router

# Create main API router
api_router = APIRouter()

# Include route modules
api_router.include_router(health_router, tags=["Health"])
api_router.include_router(billing_router)
api_router.include_router(projects_router)
api_router.include_router(covers_router)
api_router.include_router(users_router)
