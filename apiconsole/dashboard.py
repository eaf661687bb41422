"""Read-only views over the registry and session state for the console UI."""
from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional

from apiconsole.core.registry import RouteRegistry
from apiconsole.core.sessions import SessionManager
from apiconsole.core.sources import ControllerIndex
from apiconsole.models.route import RouteEntry, key_to_str
from apiconsole.models.schema import Confidence
from apiconsole.schemas.catalog import (
    CatalogOut,
    ConflictOut,
    ConflictsOut,
    ControllerOut,
    ControllersOut,
    ResolveOut,
    RouteOut,
    SummaryOut,
)


def route_out(entry: RouteEntry) -> RouteOut:
    schema = entry.schema
    return RouteOut(
        method=entry.method,
        path=entry.path,
        mountPrefix=entry.mount_prefix,
        name=entry.name,
        handler=entry.handler.label if entry.handler.qualname else None,
        tags=list(entry.tags),
        paramSchema=schema.params.to_dict() if schema.params else None,
        bodySchema=schema.body.to_dict() if schema.body else None,
        responseSchema={k: v.to_dict() for k, v in schema.response.items()},
        confidence=entry.confidence.value,
        requiresAuth=entry.requires_auth,
        registeredAt=entry.registered_at,
        lastSeen=entry.last_seen,
    )


class Dashboard:
    def __init__(
        self,
        registry: RouteRegistry,
        sessions: SessionManager,
        index: Optional[ControllerIndex] = None,
        controllers_enabled: bool = True,
    ):
        self.registry = registry
        self.sessions = sessions
        self.index = index
        self.controllers_enabled = controllers_enabled

    def catalog(
        self,
        method: Optional[str] = None,
        q: Optional[str] = None,
        confidence: Optional[str] = None,
    ) -> CatalogOut:
        entries = self.registry.list(method=method, path_contains=q, confidence=confidence)
        return CatalogOut(total=len(entries), routes=[route_out(e) for e in entries])

    def resolve(self, method: str, path: str) -> Optional[ResolveOut]:
        resolution = self.registry.resolve(method, path)
        if resolution is None:
            return None
        return ResolveOut(route=route_out(resolution.entry), bindings=resolution.bindings)

    def conflicts(self) -> ConflictsOut:
        items = [ConflictOut(**c.to_dict()) for c in self.registry.conflicts()]
        return ConflictsOut(total=len(items), conflicts=items)

    def controllers(self) -> ControllersOut:
        """Controller files and the route keys whose handlers live in each.

        Files without any registered route are listed too; they usually mean a
        router that was never mounted.
        """
        if self.index is None:
            return ControllersOut(root="", enabled=False, controllers=[])
        by_file: Dict[str, List[str]] = {str(p): [] for p in self.index.scan()}
        for entry in self.registry.list():
            file = entry.handler.file
            if not file or not self.index.contains(file):
                continue
            by_file.setdefault(str(Path(file).resolve()), []).append(key_to_str(entry.key))
        items = [ControllerOut(file=f, routes=keys) for f, keys in sorted(by_file.items())]
        return ControllersOut(root=str(self.index.root), enabled=self.controllers_enabled, controllers=items)

    def summary(self) -> SummaryOut:
        entries = self.registry.list()
        tiers = Counter(e.confidence.value for e in entries)
        return SummaryOut(
            routes=len(entries),
            byConfidence={c.value: tiers.get(c.value, 0) for c in Confidence},
            byMethod=dict(sorted(Counter(e.method for e in entries).items())),
            conflicts=len(self.registry.conflicts()),
            activeSessions=self.sessions.active_count(),
        )


__all__ = ["Dashboard", "route_out"]
