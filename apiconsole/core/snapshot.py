"""Catalog snapshots: persist the registry to JSON and load it back.

Registry state is in-memory and rebuilt on restart; a snapshot is the
explicit way to carry it across processes.
"""
from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

from apiconsole.core import matcher
from apiconsole.core.paths import ensure_parent
from apiconsole.models.route import HandlerRef, RouteEntry
from apiconsole.models.schema import Confidence, SchemaSet

FORMAT_VERSION = 1


def entry_to_dict(entry: RouteEntry) -> Dict[str, Any]:
    return {
        "method": entry.method,
        "pattern": entry.pattern.raw or entry.path,
        "mountPrefix": entry.mount_prefix,
        "handler": entry.handler.to_dict(),
        "declared": entry.declared.to_dict() if entry.declared else None,
        "inferred": entry.inferred.to_dict() if entry.inferred else None,
        "inferredConfidence": entry.inferred_confidence.value,
        "requiresAuth": entry.requires_auth,
        "name": entry.name,
        "tags": list(entry.tags),
        "registeredAt": entry.registered_at,
        "lastSeen": entry.last_seen,
        "seq": entry.seq,
    }


def entry_from_dict(data: Dict[str, Any]) -> RouteEntry:
    declared = SchemaSet.from_dict(data.get("declared"))
    inferred = SchemaSet.from_dict(data.get("inferred"))
    if declared is None:
        schema = inferred or SchemaSet()
    else:
        schema = declared.merged_over(inferred)
    handler = data.get("handler") or {}
    return RouteEntry(
        pattern=matcher.normalize(data["pattern"], data["method"]),
        mount_prefix=data.get("mountPrefix") or "",
        handler=HandlerRef(**{k: handler.get(k) for k in ("module", "qualname", "file", "lineno")}),
        declared=declared,
        inferred=inferred,
        inferred_confidence=Confidence(data.get("inferredConfidence") or "none"),
        schema=schema,
        requires_auth=bool(data.get("requiresAuth")),
        name=data.get("name"),
        tags=tuple(data.get("tags") or ()),
        registered_at=float(data.get("registeredAt") or 0.0),
        last_seen=float(data.get("lastSeen") or 0.0),
        seq=int(data.get("seq") or 0),
    )


def dump_entries(entries: Iterable[RouteEntry]) -> Dict[str, Any]:
    items = [entry_to_dict(e) for e in entries]
    return {"version": FORMAT_VERSION, "savedAt": time.time(), "total": len(items), "routes": items}


def load_entries(payload: Dict[str, Any]) -> List[RouteEntry]:
    version = payload.get("version")
    if version != FORMAT_VERSION:
        raise ValueError(f"unsupported snapshot version: {version!r}")
    return [entry_from_dict(item) for item in payload.get("routes") or []]


def write_snapshot(path: Union[str, Path], entries: Iterable[RouteEntry]) -> Dict[str, Any]:
    """Write atomically: dump to a .part file, then rename over the target."""
    target = ensure_parent(path)
    payload = dump_entries(entries)
    tmp_path = target.with_suffix(target.suffix + ".part")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    os.replace(tmp_path, target)
    return {"saved": True, "file": str(target), "bytes": target.stat().st_size, "total": payload["total"]}


def read_snapshot(path: Union[str, Path]) -> List[RouteEntry]:
    with Path(path).open("r", encoding="utf-8") as f:
        return load_entries(json.load(f))


__all__ = [
    "entry_to_dict",
    "entry_from_dict",
    "dump_entries",
    "load_entries",
    "write_snapshot",
    "read_snapshot",
    "FORMAT_VERSION",
]
