from fastapi import APIRouter

from ssms.api.v1 import auth, events, invites, notifications, roles, stakeholders, users

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(roles.router, prefix="/roles", tags=["roles"])
api_router.include_router(invites.router, prefix="/invites", tags=["invites"])
api_router.include_router(stakeholders.router, prefix="/stakeholders", tags=["stakeholders"])
api_router.include_router(events.router, prefix="/events", tags=["events"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
