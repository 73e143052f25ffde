"""
API v1 routes.

Aggregates the versioned routers of the TalkDrove API.
"""

from fastapi import APIRouter

from src.api.v1 import admin, apps, auth

router = APIRouter()
router.include_router(auth.router)
router.include_router(apps.router)
router.include_router(admin.router)
