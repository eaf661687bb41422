from fastapi import APIRouter
from .health import router as health_router
from .catalog import router as catalog_router
from .sessions import router as sessions_router
from .invoke import router as invoke_router
from .admin import admin_router


def build_console_router(prefix: str = "/__console") -> APIRouter:
    console_router = APIRouter(prefix=prefix.rstrip("/") or "/__console")
    console_router.include_router(health_router)
    console_router.include_router(catalog_router)
    console_router.include_router(sessions_router)
    console_router.include_router(invoke_router)
    console_router.include_router(admin_router)
    return console_router


__all__ = ["build_console_router"]
