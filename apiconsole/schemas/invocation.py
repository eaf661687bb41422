from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InvocationRequest(BaseModel):
    method: str = "GET"
    path: str = Field(..., description="Concrete path, optionally with a query string")
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = None
    token: Optional[str] = Field(None, description="Console session token; the session header is used when absent")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "method": "POST",
            "path": "/api/login",
            "headers": {"content-type": "application/json"},
            "body": {"username": "alice", "password": "s3cret"},
        }
    })

    @field_validator("method")
    def upper_method(cls, v: str):  # type: ignore[override]
        v = (v or "").strip().upper()
        if not v:
            raise ValueError("method must not be empty")
        return v

    @field_validator("path")
    def absolute_path(cls, v: str):  # type: ignore[override]
        if not v.startswith("/"):
            raise ValueError("path must start with '/'")
        return v


class InvocationOut(BaseModel):
    status: int
    headers: Dict[str, str]
    body: Any = None
    durationMs: float
    route: str
    bindings: Dict[str, str] = Field(default_factory=dict)


class ErrorOut(BaseModel):
    error: str
    message: Optional[str] = None
