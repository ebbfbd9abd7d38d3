"""API router composition for all route groups."""

from fastapi import APIRouter

from .routes import suggestions, swipes, users

api_router = APIRouter()
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(suggestions.router, prefix="/suggestions", tags=["suggestions"])
api_router.include_router(swipes.router, tags=["swipes"])
