"""Catalog administration: reset (re-discover) and snapshot save/restore.

All endpoints require a valid console session when auth is enabled.
"""
from fastapi import APIRouter, Depends, HTTPException

from apiconsole.api.deps import require_session
from apiconsole.core.logging import get_logger
from apiconsole.service import ConsoleService, get_console

logger = get_logger("console")

admin_router = APIRouter(tags=["console"], dependencies=[Depends(require_session)])


@admin_router.post("/reset")
async def reset_catalog(console: ConsoleService = Depends(get_console)):
    """Clear the catalog and conflict log, then re-discover the host routes."""
    total = console.reset()
    return {"reset": True, "total": total}


@admin_router.post("/snapshot")
async def save_snapshot(console: ConsoleService = Depends(get_console)):
    return console.save_snapshot()


@admin_router.post("/snapshot/restore")
async def restore_snapshot(console: ConsoleService = Depends(get_console)):
    try:
        restored = console.load_snapshot()
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="no snapshot saved")
    except ValueError as exc:
        logger.warning("snapshot restore failed err=%s", exc)
        raise HTTPException(status_code=422, detail=str(exc))
    return {"restored": restored}


__all__ = ["admin_router"]
