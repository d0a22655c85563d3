from __future__ import annotations

from fastapi import APIRouter

from promotracker.api.routes import admin_audit, admin_reevaluation, bookings

api_router = APIRouter()

api_router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])

# Admin
api_router.include_router(admin_reevaluation.router, prefix="/admin", tags=["admin-reevaluation"])
api_router.include_router(admin_audit.router, prefix="/admin", tags=["admin-audit"])
