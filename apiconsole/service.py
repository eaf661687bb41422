"""Console service: wires the registry, inference, sessions and dispatcher.

One instance per host application, stored on ``app.state.console`` by
``install_console``.
"""
from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from apiconsole.adapters import iter_route_tuples
from apiconsole.core import matcher
from apiconsole.core.config import Settings, get_settings
from apiconsole.core.dispatcher import InvocationDispatcher
from apiconsole.core.errors import ConsoleError, CredentialsRejected, DispatchError, error_payload
from apiconsole.core.inference import InferenceConfig, SchemaInferenceEngine
from apiconsole.core.logging import get_logger
from apiconsole.core.paths import resolve_path
from apiconsole.core.registry import RouteRegistry
from apiconsole.core.sessions import SessionManager
from apiconsole.core.snapshot import read_snapshot, write_snapshot
from apiconsole.core.sources import ControllerIndex
from apiconsole.dashboard import Dashboard
from apiconsole.models.route import RouteEntry

logger = get_logger("console")


class ConsoleService:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        host_app: Any = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or get_settings()
        self.host_app = host_app
        s = self.settings
        self.index = ControllerIndex(s.controllers_path)
        self.engine = SchemaInferenceEngine(
            self.index,
            InferenceConfig.from_settings(s),
            enabled=s.auto_detect_controllers,
        )
        self.registry = RouteRegistry(self.engine, conflict_history=s.conflict_history, clock=clock)
        self.sessions = SessionManager(
            ttl=s.session_ttl,
            sweep_grace=s.session_sweep_grace,
            clock=clock,
            api_key=s.console_api_key,
        )
        self.dispatcher = InvocationDispatcher(
            self.registry,
            self.sessions,
            host_app=host_app,
            base_url=s.host_base_url,
            timeout=s.invocation_timeout,
            enable_auth=s.enable_auth,
            session_header=s.session_header,
            http2=s.forward_http2,
        )
        self.dashboard = Dashboard(
            self.registry,
            self.sessions,
            index=self.index,
            controllers_enabled=s.auto_detect_controllers,
        )
        self._included: List[Tuple[str, Any]] = []

    # ---------- registration ----------
    def _is_console_path(self, path: str) -> bool:
        prefix = matcher.join(self.settings.console_prefix, "")
        return path == prefix or path.startswith(prefix.rstrip("/") + "/")

    def register_routes(self, prefix: Optional[str], router: Any) -> List[RouteEntry]:
        """Register every route `router` exposes under `prefix`.

        A malformed pattern is logged and skipped; the remaining routes are
        still registered.
        """
        registered: List[RouteEntry] = []
        for item in iter_route_tuples(router):
            if self._is_console_path(matcher.join(prefix, item.pattern)):
                continue
            try:
                entry = self.registry.register(
                    item.method,
                    item.pattern,
                    mount_prefix=prefix,
                    handler=item.handler,
                    declared=item.meta.get("declared"),
                    requires_auth=bool(item.meta.get("requires_auth")),
                    name=item.name,
                    tags=item.tags,
                )
            except ValueError as exc:
                logger.warning("skipping route method=%s pattern=%s err=%s", item.method, item.pattern, exc)
                continue
            registered.append(entry)
        return registered

    def include_router(self, app: FastAPI, router: Any, prefix: str = "", **kwargs: Any) -> List[RouteEntry]:
        """Mount `router` on the host app and record its routes with the mount prefix."""
        app.include_router(router, prefix=prefix, **kwargs)
        self._included.append((prefix, router))
        return self.register_routes(prefix, router)

    def discover(self, app: Any = None) -> int:
        """Register every route the host app exposes (console routes excluded).

        Routes already known keep their recorded mount prefix.
        """
        app = app if app is not None else self.host_app
        if app is None:
            return 0
        entries = self.register_routes(None, app)
        logger.info("discovered %d routes (catalog size %d)", len(entries), len(self.registry))
        return len(entries)

    def reset(self) -> int:
        """Rebuild the catalog; routers mounted via include_router keep their prefix."""
        self.registry.reset()
        self.index.clear()
        for prefix, router in self._included:
            self.register_routes(prefix, router)
        self.discover()
        return len(self.registry)

    # ---------- snapshots ----------
    def snapshot_file(self, path: Union[str, Path, None] = None) -> Path:
        return resolve_path(path or self.settings.snapshot_path)

    def save_snapshot(self, path: Union[str, Path, None] = None) -> Dict[str, Any]:
        target = self.snapshot_file(path)
        meta = write_snapshot(target, self.registry.snapshot())
        logger.info("catalog snapshot saved file=%s total=%s", target, meta["total"])
        return meta

    def load_snapshot(self, path: Union[str, Path, None] = None) -> int:
        target = self.snapshot_file(path)
        count = self.registry.restore(read_snapshot(target))
        logger.info("catalog snapshot restored file=%s total=%d", target, count)
        return count


async def console_error_handler(request: Request, exc: Exception) -> JSONResponse:
    code = getattr(exc, "code", "console-error")
    if isinstance(exc, DispatchError):
        status = exc.status_code
    elif isinstance(exc, CredentialsRejected):
        status = 401
    else:
        status = 400
    return JSONResponse(error_payload(code), status_code=status)


def install_console(app: FastAPI, settings: Optional[Settings] = None) -> ConsoleService:
    """Attach a ConsoleService and the console router to `app`."""
    from apiconsole.api.routes import build_console_router

    service = ConsoleService(settings, host_app=app)
    app.state.console = service
    app.add_exception_handler(ConsoleError, console_error_handler)
    app.include_router(build_console_router(service.settings.console_prefix))
    return service


def get_console(request: Request) -> ConsoleService:
    return request.app.state.console


__all__ = ["ConsoleService", "install_console", "get_console", "console_error_handler"]
