"""Test invocation dispatcher.

Resolves a console request against the registry, checks the console session
when required, and forwards the request to the host. Handler errors come back
as ordinary results; only resolution, authorization, timeout and transport
failures raise.
"""
from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Mapping, Optional
from urllib.parse import urlsplit

import httpx

from apiconsole.core.errors import HostUnreachable, InvocationTimeout, RouteNotFound, SessionInvalid, Unauthorized
from apiconsole.core.http_utils import aclose_safely, decode_body, ensure_async_client
from apiconsole.core.logging import get_logger, mask_token
from apiconsole.core.registry import RouteRegistry
from apiconsole.core.sessions import SessionManager
from apiconsole.models.route import RouteKey, key_to_str

logger = get_logger("dispatcher")

_HOP_HEADERS = {"host", "content-length", "connection", "transfer-encoding"}


def _discard_result(task: "asyncio.Future[Any]") -> None:
    # abandoned forwards finish on their own; keep their outcome out of the loop's error log
    if not task.cancelled():
        task.exception()


@dataclass(frozen=True)
class InvocationRecord:
    method: str
    path: str
    route: RouteKey
    bindings: Dict[str, str]
    request_headers: Dict[str, str]
    request_body: Any
    status: int
    headers: Dict[str, str]
    body: Any
    duration_ms: float
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "headers": self.headers,
            "body": self.body,
            "durationMs": self.duration_ms,
            "route": key_to_str(self.route),
            "bindings": self.bindings,
        }


class InvocationDispatcher:
    def __init__(
        self,
        registry: RouteRegistry,
        sessions: SessionManager,
        host_app: Any = None,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        enable_auth: bool = True,
        session_header: str = "X-Console-Session",
        http2: bool = False,
    ):
        self.registry = registry
        self.sessions = sessions
        self.host_app = host_app
        self.base_url = base_url
        self.timeout = timeout
        self.enable_auth = enable_auth
        self.session_header = session_header
        self.http2 = http2
        self.open_connections = 0

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[httpx.AsyncClient]:
        client = await ensure_async_client(
            app=self.host_app if self.base_url is None else None,
            base_url=self.base_url,
            http2=self.http2,
            timeout=self.timeout,
        )
        self.open_connections += 1
        try:
            yield client
        finally:
            self.open_connections -= 1
            await aclose_safely(client)

    def _authorize(self, requires_auth: bool, token: Optional[str]) -> Optional[str]:
        if not (self.enable_auth or requires_auth):
            return None
        try:
            self.sessions.validate(token)
        except SessionInvalid as exc:
            # the specific reason stays in the log; callers only see `unauthorized`
            logger.info("invocation unauthorized reason=%s token=%s", exc.reason, mask_token(token))
            raise Unauthorized("unauthorized") from exc
        return token

    async def _forward(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        request_kwargs: Dict[str, Any],
    ) -> httpx.Response:
        """Send the request with a hard deadline.

        The request runs as its own task. Sync handlers execute in a worker
        thread that cancellation cannot interrupt, so on expiry the task is
        cancelled and abandoned instead of awaited.
        """
        task = asyncio.ensure_future(client.request(method, path, **request_kwargs))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout)
        finally:
            if not task.done():
                task.cancel()
                task.add_done_callback(_discard_result)
        if not done:
            logger.info("invocation timeout method=%s path=%s budget_s=%.2f", method, path, self.timeout)
            raise InvocationTimeout(f"{method} {path}")
        try:
            return task.result()
        except httpx.TimeoutException as exc:
            raise InvocationTimeout(f"{method} {path}") from exc
        except httpx.HTTPError as exc:
            logger.warning("invocation transport error method=%s path=%s err=%s", method, path, exc)
            raise HostUnreachable(str(exc)) from exc

    async def invoke(
        self,
        method: str,
        path: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
        token: Optional[str] = None,
    ) -> InvocationRecord:
        method = (method or "GET").upper()
        resolution = self.registry.resolve(method, urlsplit(path).path or "/")
        if resolution is None:
            raise RouteNotFound(f"{method} {path}")
        entry = resolution.entry
        token = self._authorize(entry.requires_auth, token)

        out_headers = {k: str(v) for k, v in (headers or {}).items() if k.lower() not in _HOP_HEADERS}
        if token:
            out_headers[self.session_header] = token
        request_kwargs: Dict[str, Any] = {"headers": out_headers}
        if isinstance(body, (dict, list)):
            request_kwargs["json"] = body
        elif isinstance(body, (str, bytes)):
            request_kwargs["content"] = body
        elif body is not None:
            request_kwargs["json"] = body

        t0 = time.perf_counter()
        async with self._connection() as client:
            response = await self._forward(client, method, path, request_kwargs)
            payload = decode_body(response)
        dur_ms = round((time.perf_counter() - t0) * 1000, 3)
        logger.info(
            "invoke method=%s path=%s route=%s status=%s dur_ms=%s",
            method, path, key_to_str(entry.key), response.status_code, dur_ms,
        )
        return InvocationRecord(
            method=method,
            path=path,
            route=entry.key,
            bindings=dict(resolution.bindings),
            request_headers=out_headers,
            request_body=body,
            status=response.status_code,
            headers=dict(response.headers),
            body=payload,
            duration_ms=dur_ms,
        )


__all__ = ["InvocationDispatcher", "InvocationRecord"]
