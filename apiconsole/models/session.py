from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class Session:
    token: str
    created_at: float
    expires_at: float
    claims: Dict[str, Any] = field(default_factory=dict)
    revoked: bool = False

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def is_valid(self, now: float) -> bool:
        return not self.revoked and not self.is_expired(now)

__all__ = ["Session"]
