from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field


class UserIn(BaseModel):
    name: str = Field(..., min_length=1)
    email: str
    age: Optional[int] = Field(None, ge=0)

    model_config = ConfigDict(json_schema_extra={
        "example": {"name": "Carol", "email": "carol@example.com", "age": 31}
    })


class UserOut(BaseModel):
    id: int
    name: str
    email: str
    age: Optional[int] = None


router = APIRouter(prefix="/users", tags=["users"])

_USERS: Dict[int, UserOut] = {
    1: UserOut(id=1, name="Alice", email="alice@example.com", age=30),
    2: UserOut(id=2, name="Bob", email="bob@example.com"),
}


@router.get("", response_model=List[UserOut])
async def list_users(
    limit: int = Query(20, ge=1, le=100),
    q: Optional[str] = Query(None, description="Case-insensitive name filter"),
):
    users = sorted(_USERS.values(), key=lambda u: u.id)
    if q:
        users = [u for u in users if q.lower() in u.name.lower()]
    return users[:limit]


@router.get("/{user_id}", response_model=UserOut)
async def get_user(user_id: int):
    user = _USERS.get(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="user not found")
    return user


@router.post("", response_model=UserOut, status_code=201)
async def create_user(payload: UserIn):
    if any(u.email == payload.email for u in _USERS.values()):
        raise HTTPException(status_code=409, detail="email already registered")
    user = UserOut(id=max(_USERS, default=0) + 1, **payload.model_dump())
    _USERS[user.id] = user
    return user


__all__ = ["router", "UserIn", "UserOut"]
