# Fichier: backend/app/api/v2/api.py
from fastapi import APIRouter
from .endpoints import (
    admin_router,
    bookmark_router,
    resource_router,
    skill_router,
)

api_router = APIRouter()

api_router.include_router(skill_router.router, prefix="/skills", tags=["Skills"])
api_router.include_router(resource_router.router, prefix="/resources", tags=["Resources"])
api_router.include_router(bookmark_router.router, prefix="/bookmarks", tags=["Bookmarks"])
api_router.include_router(admin_router.router, prefix="/admin", tags=["Admin"])
