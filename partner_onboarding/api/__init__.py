"""API routes for Partner Onboarding."""

from fastapi import APIRouter

from .audit import router as audit_router
from .auth import router as auth_router
from .onboarding import router as onboarding_router
from .review_queue import router as review_queue_router
from .session import router as session_router

# Main API router
api_router = APIRouter()

# Identity (register, login, session, access gate)
api_router.include_router(auth_router)
api_router.include_router(session_router)

# Partner progression
api_router.include_router(onboarding_router)

# Reviewer queues and decisions
api_router.include_router(review_queue_router)
api_router.include_router(audit_router)

__all__ = ["api_router"]
