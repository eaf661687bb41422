"""Test invocation endpoint.

Dispatch failures (route-not-found, unauthorized, timeout) are turned into
``{"error": code}`` bodies by the console exception handler; whatever the
host handler answers, 4xx/5xx included, is returned as data.
"""
from fastapi import APIRouter, Depends, Request

from apiconsole.api.deps import extract_token
from apiconsole.schemas.invocation import ErrorOut, InvocationOut, InvocationRequest
from apiconsole.service import ConsoleService, get_console

router = APIRouter(tags=["console"])

_ERRORS = {
    401: {"model": ErrorOut, "description": "Missing, unknown, expired or revoked session"},
    404: {"model": ErrorOut, "description": "No registered route matches"},
    502: {"model": ErrorOut, "description": "Host unreachable"},
    504: {"model": ErrorOut, "description": "Invocation timed out"},
}


@router.post("/invoke", response_model=InvocationOut, responses=_ERRORS, summary="Invoke a registered route")
async def invoke(payload: InvocationRequest, request: Request, console: ConsoleService = Depends(get_console)):
    token = payload.token or extract_token(request, console.settings.session_header)
    record = await console.dispatcher.invoke(
        payload.method,
        payload.path,
        headers=payload.headers,
        body=payload.body,
        token=token,
    )
    return record.to_dict()


__all__ = ["router"]
