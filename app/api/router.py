from fastapi import APIRouter

from app.routers import (
    auth,
    health,
    invitations,
    user_notifications,
    websocket,
)

api_router = APIRouter()
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])
api_router.include_router(invitations.router, prefix="/invitations", tags=["Invitations"])
api_router.include_router(user_notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(websocket.router, tags=["WebSocket"])
