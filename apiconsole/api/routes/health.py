"""Console health endpoint.

Reports catalog size and live session count alongside {"status": "ok"}.
"""
from fastapi import APIRouter, Depends

from apiconsole.service import ConsoleService, get_console

router = APIRouter(tags=["console"])


@router.get("/health", summary="Health check")
async def health(console: ConsoleService = Depends(get_console)):
    return {
        "status": "ok",
        "routes": len(console.registry),
        "activeSessions": console.sessions.active_count(),
        "openConnections": console.dispatcher.open_connections,
    }


__all__ = ["router"]
