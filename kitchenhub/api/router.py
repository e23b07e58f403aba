from __future__ import annotations

from fastapi import APIRouter

from kitchenhub.api.routes import admin_audit, applications, kitchens, manage_applications, manage_kitchens, manage_reservations, reservations

api_router = APIRouter()

api_router.include_router(kitchens.router, tags=["kitchens"])
api_router.include_router(reservations.router, prefix="/reservations", tags=["reservations"])
api_router.include_router(applications.router, prefix="/applications", tags=["applications"])

# Location operators
api_router.include_router(manage_kitchens.router, prefix="/manage", tags=["manage-kitchens"])
api_router.include_router(manage_reservations.router, prefix="/manage", tags=["manage-reservations"])
api_router.include_router(manage_applications.router, prefix="/manage", tags=["manage-applications"])

# Admin
api_router.include_router(admin_audit.router, prefix="/admin", tags=["admin-audit"])
