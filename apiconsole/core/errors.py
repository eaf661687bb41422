"""Console error taxonomy and the shared structured error payload helper."""
from __future__ import annotations

from typing import Any, Dict, Optional

from apiconsole.models.route import RegistrationConflict


class ConsoleError(Exception):
    """Base class for errors raised by the console core."""

    code = "console-error"


class InferenceFailure(ConsoleError):
    """Raised inside the inference engine; never escapes `infer()`."""

    code = "inference-failure"


class InferenceDeadline(InferenceFailure):
    code = "inference-timeout"


class DispatchError(ConsoleError):
    """Failure of a test invocation that is not the handler's own response."""

    code = "dispatch-error"
    status_code = 500


class RouteNotFound(DispatchError):
    code = "route-not-found"
    status_code = 404


class Unauthorized(DispatchError):
    code = "unauthorized"
    status_code = 401


class InvocationTimeout(DispatchError):
    code = "timeout"
    status_code = 504


class HostUnreachable(DispatchError):
    code = "host-unreachable"
    status_code = 502


class SessionInvalid(ConsoleError):
    """Token failed validation. `reason` is one of unknown, revoked, expired."""

    code = "unauthorized"

    def __init__(self, reason: str, token: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.token = token


class CredentialsRejected(ConsoleError):
    code = "invalid-credentials"


def error_payload(
    code: str,
    message: Optional[str] = None,
    *,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Return a consistent error body for console responses."""
    payload: Dict[str, Any] = {"error": code}
    if message:
        payload["message"] = message
    if extra:
        payload.update(extra)
    return payload


__all__ = [
    "ConsoleError",
    "RegistrationConflict",
    "InferenceFailure",
    "InferenceDeadline",
    "DispatchError",
    "RouteNotFound",
    "Unauthorized",
    "InvocationTimeout",
    "HostUnreachable",
    "SessionInvalid",
    "CredentialsRejected",
    "error_payload",
]
