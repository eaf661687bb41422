from fastapi import APIRouter, Depends

from apiconsole.schemas.session import RevokeOut, SessionOut, SessionRequest
from apiconsole.service import ConsoleService, get_console

router = APIRouter(prefix="/sessions", tags=["console"])


@router.post("", response_model=SessionOut, status_code=201, summary="Issue a console session")
async def issue_session(payload: SessionRequest, console: ConsoleService = Depends(get_console)):
    session = console.sessions.authenticate(payload.credentials())
    return SessionOut(token=session.token, expiresAt=session.expires_at, principal=session.claims.get("principal"))


@router.delete("/{token}", response_model=RevokeOut, summary="Revoke a console session")
async def revoke_session(token: str, console: ConsoleService = Depends(get_console)):
    # unknown tokens answer the same way so revocation does not probe existence
    console.sessions.revoke(token)
    return RevokeOut(ok=True)


__all__ = ["router"]
