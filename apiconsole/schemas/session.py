from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionRequest(BaseModel):
    principal: Optional[str] = Field(None, description="Who is using the console")
    api_key: Optional[str] = Field(None, description="Console API key when one is configured")
    claims: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(json_schema_extra={
        "example": {"principal": "alice", "api_key": "change-me", "claims": {"team": "payments"}}
    })

    def credentials(self) -> Dict[str, Any]:
        creds: Dict[str, Any] = dict(self.claims)
        creds["principal"] = self.principal
        creds["api_key"] = self.api_key
        return creds


class SessionOut(BaseModel):
    token: str
    expiresAt: float
    principal: Optional[str] = None


class RevokeOut(BaseModel):
    ok: bool = True
