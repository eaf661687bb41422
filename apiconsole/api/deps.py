"""Shared dependencies for console routes."""
from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from apiconsole.core.errors import SessionInvalid, Unauthorized
from apiconsole.core.logging import get_logger, mask_token
from apiconsole.models.session import Session
from apiconsole.service import ConsoleService, get_console

logger = get_logger("console")


def extract_token(request: Request, header_name: str) -> Optional[str]:
    """Session token from the configured header or ``Authorization: Bearer``."""
    token = request.headers.get(header_name)
    if token:
        return token.strip()
    authorization = request.headers.get("authorization")
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1].strip()
    return None


async def require_session(
    request: Request,
    console: ConsoleService = Depends(get_console),
) -> Optional[Session]:
    """Validate the caller's console session when auth is enabled.

    Every failure reason surfaces as ``unauthorized``.
    """
    if not console.settings.enable_auth:
        return None
    token = extract_token(request, console.settings.session_header)
    try:
        return console.sessions.validate(token)
    except SessionInvalid as exc:
        logger.info("console request unauthorized path=%s reason=%s token=%s", request.url.path, exc.reason, mask_token(token))
        raise Unauthorized("unauthorized") from exc


__all__ = ["require_session", "extract_token", "get_console"]
