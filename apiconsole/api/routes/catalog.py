"""Read-only catalog endpoints: routes, resolution, conflicts, controllers."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from apiconsole.core.errors import RouteNotFound
from apiconsole.schemas.catalog import CatalogOut, ConflictsOut, ControllersOut, ResolveOut, SummaryOut
from apiconsole.service import ConsoleService, get_console

router = APIRouter(tags=["console"])


@router.get("/routes", response_model=CatalogOut, summary="Route catalog")
async def list_routes(
    method: Optional[str] = Query(None, description="Filter by HTTP method"),
    q: Optional[str] = Query(None, description="Substring of the path"),
    confidence: Optional[str] = Query(None, pattern="^(none|low|high|explicit)$"),
    console: ConsoleService = Depends(get_console),
):
    return console.dashboard.catalog(method=method, q=q, confidence=confidence)


@router.get("/routes/resolve", response_model=ResolveOut, summary="Resolve a concrete path")
async def resolve_route(
    path: str = Query(..., description="Concrete request path"),
    method: str = Query("GET"),
    console: ConsoleService = Depends(get_console),
):
    resolved = console.dashboard.resolve(method, path)
    if resolved is None:
        raise RouteNotFound(f"{method.upper()} {path}")
    return resolved


@router.get("/conflicts", response_model=ConflictsOut)
async def list_conflicts(console: ConsoleService = Depends(get_console)):
    return console.dashboard.conflicts()


@router.get("/controllers", response_model=ControllersOut)
async def list_controllers(console: ConsoleService = Depends(get_console)):
    return console.dashboard.controllers()


@router.get("/summary", response_model=SummaryOut)
async def summary(console: ConsoleService = Depends(get_console)):
    return console.dashboard.summary()


__all__ = ["router"]
