"""Mount all API routes."""

from fastapi import APIRouter

from peerassist.api.tasks import router as tasks_router
from peerassist.api.users import router as users_router

api_router = APIRouter()
api_router.include_router(users_router, tags=["users"])
api_router.include_router(tasks_router, tags=["tasks"])
