"""Demo login endpoint.

Parses the JSON body by hand instead of through a model, which is exactly
the kind of handler the console infers a body schema for.
"""
import hashlib

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

# mounted under /api by the application factory
router = APIRouter(tags=["auth"])

_USERS = {
    "alice": hashlib.sha256(b"wonderland").hexdigest(),
    "bob": hashlib.sha256(b"builder").hexdigest(),
}


@router.post("/login")
async def login(request: Request):
    try:
        payload = await request.json()
    except Exception:
        return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
    if not isinstance(payload, dict):
        return JSONResponse({"error": "JSON object expected"}, status_code=400)
    username = (payload.get("username") or "").strip()
    password = payload.get("password") or ""
    if not username or not password:
        return JSONResponse({"error": "username and password required"}, status_code=400)
    digest = hashlib.sha256(password.encode("utf-8")).hexdigest()
    if _USERS.get(username) != digest:
        return JSONResponse({"error": "invalid credentials"}, status_code=401)
    return {"ok": True, "username": username, "token": f"demo-{digest[:16]}"}


@router.post("/logout")
async def logout(request: Request):
    token = request.headers.get("authorization")
    return {"ok": True, "hadToken": token is not None}


__all__ = ["router"]
