from fastapi import APIRouter
from app.api.routers import auth, imports, admin

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(imports.router, prefix="/imports", tags=["imports"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
