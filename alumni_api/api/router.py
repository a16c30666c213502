from fastapi import APIRouter

from alumni_api.api.routes import health, search, update_requests, volunteer

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(search.router, tags=["public"])
api_router.include_router(update_requests.router, tags=["public"])
api_router.include_router(volunteer.router, prefix="/volunteer/update-requests", tags=["moderation"])
