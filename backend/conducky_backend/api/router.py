from fastapi import APIRouter

from conducky_backend.api.routes.auth import router as auth_router
from conducky_backend.api.routes.events import router as events_router
from conducky_backend.api.routes.health import router as health_router
from conducky_backend.api.routes.incidents import router as incidents_router
from conducky_backend.api.routes.organizations import router as organizations_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router)
api_router.include_router(organizations_router, prefix="/organizations", tags=["organizations"])
api_router.include_router(events_router, prefix="/events", tags=["events"])
api_router.include_router(incidents_router, prefix="/events/{event_id}/incidents", tags=["incidents"])
