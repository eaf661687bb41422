from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ConfidenceTier = Literal["none", "low", "high", "explicit"]


class RouteOut(BaseModel):
    method: str
    path: str
    mountPrefix: str = ""
    name: Optional[str] = None
    handler: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    paramSchema: Optional[Dict[str, Any]] = None
    bodySchema: Optional[Dict[str, Any]] = None
    responseSchema: Dict[str, Any] = Field(default_factory=dict, description="Variants keyed by status label")
    confidence: ConfidenceTier = "none"
    requiresAuth: bool = False
    registeredAt: float
    lastSeen: float

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "method": "POST",
            "path": "/api/login",
            "mountPrefix": "/api",
            "name": "login",
            "handler": "controllers.auth:login",
            "tags": ["auth"],
            "paramSchema": None,
            "bodySchema": {
                "kind": "object",
                "required": False,
                "fields": {
                    "username": {"kind": "string", "required": True},
                    "password": {"kind": "string", "required": True},
                },
            },
            "responseSchema": {"200": {"kind": "object"}, "400": {"kind": "object"}},
            "confidence": "low",
            "requiresAuth": False,
            "registeredAt": 1760000000.0,
            "lastSeen": 1760000000.0,
        }
    })


class CatalogOut(BaseModel):
    total: int
    routes: List[RouteOut]


class ResolveOut(BaseModel):
    route: RouteOut
    bindings: Dict[str, str] = Field(default_factory=dict)


class ConflictOut(BaseModel):
    kind: Literal["duplicate", "shadow"]
    existing: str
    candidate: str
    general: Optional[str] = None
    specific: Optional[str] = None
    detectedAt: float = 0.0


class ConflictsOut(BaseModel):
    total: int
    conflicts: List[ConflictOut]


class ControllerOut(BaseModel):
    file: str
    routes: List[str] = Field(default_factory=list)


class ControllersOut(BaseModel):
    root: str
    enabled: bool
    controllers: List[ControllerOut]


class SummaryOut(BaseModel):
    routes: int
    byConfidence: Dict[str, int]
    byMethod: Dict[str, int]
    conflicts: int
    activeSessions: int
