import asyncio

from fastapi import APIRouter, Query, Request

from apiconsole.adapters import console_meta

router = APIRouter(prefix="/ops", tags=["ops"])


@router.get("/ping")
async def ping():
    return {"pong": True}


@router.get("/slow")
async def slow(seconds: float = Query(5.0, ge=0, le=60)):
    await asyncio.sleep(seconds)
    return {"slept": seconds}


@router.post("/cache/flush")
@console_meta(requires_auth=True)
async def flush_cache(request: Request):
    scope = request.query_params.get("scope", "all")
    return {"flushed": scope}


__all__ = ["router"]
