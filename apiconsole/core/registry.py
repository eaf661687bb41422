"""Route registry: the canonical, ordered catalog of discovered endpoints.

Entries are immutable; every update builds a new RouteEntry and swaps it in
under the lock, so readers always observe a complete entry.
"""
from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import replace
from typing import Any, Callable, Deque, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from apiconsole.core import matcher
from apiconsole.core.inference import InferenceResult, SchemaInferenceEngine
from apiconsole.core.logging import get_logger
from apiconsole.models.route import (
    Conflict,
    HandlerLike,
    HandlerRef,
    Resolution,
    RouteEntry,
    RouteKey,
    key_to_str,
)
from apiconsole.models.schema import Confidence, SchemaSet

logger = get_logger("registry")

DeclaredLike = Union[SchemaSet, Mapping[str, Any], None]


def _declared(value: DeclaredLike) -> Optional[SchemaSet]:
    if value is None or isinstance(value, SchemaSet):
        return value
    return SchemaSet.from_dict(value)


class RouteRegistry:
    def __init__(
        self,
        engine: Optional[SchemaInferenceEngine] = None,
        conflict_history: int = 200,
        clock: Callable[[], float] = time.time,
    ):
        self.engine = engine
        self.clock = clock
        self._lock = threading.RLock()
        self._entries: Dict[RouteKey, RouteEntry] = {}
        self._order: List[RouteKey] = []
        self._conflicts: Deque[Conflict] = deque(maxlen=max(1, conflict_history))
        self._seq = 0

    # ---------- writes ----------
    def register(
        self,
        method: str,
        pattern: str,
        mount_prefix: Optional[str] = "",
        handler: HandlerLike = None,
        declared: DeclaredLike = None,
        requires_auth: bool = False,
        name: Optional[str] = None,
        tags: Sequence[str] = (),
    ) -> RouteEntry:
        """Create or update the entry for (method, pattern) under `mount_prefix`.

        A None `mount_prefix` keeps the prefix of an existing entry. A None
        `declared` keeps previously declared schemas. Inference runs on every
        call but never downgrades what is already stored.
        """
        full = matcher.join(mount_prefix, pattern)
        rp = matcher.normalize(full, method)
        ref = HandlerRef.from_callable(handler)
        declared_set = _declared(declared)
        inference = self._infer(ref, rp)
        now = self.clock()

        with self._lock:
            current = self._entries.get(rp.key)
            if current is None:
                self._check_conflicts(rp)
                self._seq += 1
                entry = RouteEntry(
                    pattern=rp,
                    mount_prefix=matcher.join(mount_prefix, "") if mount_prefix else "",
                    handler=ref,
                    declared=declared_set,
                    inferred=inference.as_schema_set() if inference.confidence is not Confidence.NONE else None,
                    inferred_confidence=inference.confidence,
                    requires_auth=requires_auth,
                    name=name,
                    tags=tuple(tags),
                    registered_at=now,
                    last_seen=now,
                    seq=self._seq,
                )
                entry = replace(entry, schema=self._merged(entry.declared, entry.inferred))
                self._entries[rp.key] = entry
                self._order.append(rp.key)
                logger.debug("registered %s (%s)", rp, entry.confidence.value)
                return entry

            if current.handler != ref and ref.qualname is not None:
                self._record(matcher.detect_conflict(current.pattern, rp))
            inferred, confidence = self._keep_stronger(current, inference)
            new_declared = current.declared
            if declared_set is not None:
                new_declared = declared_set.merged_over(current.declared)
            entry = replace(
                current,
                pattern=rp,
                mount_prefix=current.mount_prefix if mount_prefix is None else (matcher.join(mount_prefix, "") if mount_prefix else ""),
                handler=ref if ref.qualname is not None else current.handler,
                declared=new_declared,
                inferred=inferred,
                inferred_confidence=confidence,
                requires_auth=requires_auth or current.requires_auth,
                name=name or current.name,
                tags=tuple(tags) or current.tags,
                last_seen=now,
            )
            entry = replace(entry, schema=self._merged(entry.declared, entry.inferred))
            self._entries[rp.key] = entry
            return entry

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()
            self._order.clear()
            self._conflicts.clear()
            self._seq = 0
        logger.info("route catalog reset")

    def snapshot(self) -> List[RouteEntry]:
        """Consistent copy of every entry, in registration order."""
        with self._lock:
            return [self._entries[k] for k in self._order]

    def restore(self, entries: Iterable[RouteEntry]) -> int:
        """Replace the catalog with `entries` (in the given order)."""
        with self._lock:
            self._entries.clear()
            self._order.clear()
            for entry in entries:
                self._entries[entry.key] = entry
                self._order.append(entry.key)
            self._seq = max((e.seq for e in self._entries.values()), default=0)
            return len(self._order)

    # ---------- reads ----------
    def get(self, key: RouteKey) -> Optional[RouteEntry]:
        with self._lock:
            return self._entries.get(key)

    def list(
        self,
        method: Optional[str] = None,
        path_contains: Optional[str] = None,
        confidence: Union[Confidence, str, None] = None,
    ) -> List[RouteEntry]:
        """Entries in registration order, optionally filtered."""
        with self._lock:
            entries = [self._entries[k] for k in self._order]
        if method:
            entries = [e for e in entries if e.method == method.upper()]
        if path_contains:
            needle = path_contains.lower()
            entries = [e for e in entries if needle in e.path.lower()]
        if confidence:
            tier = Confidence(confidence)
            entries = [e for e in entries if e.confidence is tier]
        return entries

    def resolve(self, method: str, concrete_path: str) -> Optional[Resolution]:
        """Most specific entry matching `concrete_path`; ties go to the earliest."""
        method = method.upper()
        best: Optional[Resolution] = None
        best_rank = None
        for entry in self.list(method=method):
            bindings = matcher.match(entry.pattern, concrete_path)
            if bindings is None:
                continue
            rank = matcher.specificity(entry.pattern)
            if best_rank is None or rank > best_rank:
                best, best_rank = Resolution(entry=entry, bindings=bindings), rank
        return best

    def conflicts(self) -> List[Conflict]:
        with self._lock:
            return list(self._conflicts)

    def __len__(self) -> int:
        with self._lock:
            return len(self._order)

    # ---------- internals ----------
    def _infer(self, ref: HandlerRef, rp) -> InferenceResult:
        if self.engine is None or ref.qualname is None:
            return InferenceResult.empty()
        return self.engine.infer(ref, rp)

    def _check_conflicts(self, candidate) -> None:
        for key in self._order:
            existing = self._entries[key]
            if existing.method != candidate.method:
                continue
            self._record(matcher.detect_conflict(existing.pattern, candidate))

    def _record(self, conflict: Optional[Conflict]) -> None:
        if conflict is None:
            return
        self._conflicts.append(conflict)
        logger.warning(
            "route conflict kind=%s existing=%s candidate=%s",
            conflict.kind,
            key_to_str(conflict.existing),
            key_to_str(conflict.candidate),
        )

    @staticmethod
    def _keep_stronger(current: RouteEntry, inference: InferenceResult):
        """Merge old and new inferred schemas with the stronger one as primary."""
        if inference.confidence is Confidence.NONE:
            return current.inferred, current.inferred_confidence
        new = inference.as_schema_set()
        if current.inferred is None or inference.confidence.rank >= current.inferred_confidence.rank:
            merged = new.merged_over(current.inferred)
        else:
            merged = current.inferred.merged_over(new)
        return merged, Confidence.best(current.inferred_confidence, inference.confidence)

    @staticmethod
    def _merged(declared: Optional[SchemaSet], inferred: Optional[SchemaSet]) -> SchemaSet:
        if declared is None:
            return inferred or SchemaSet()
        return declared.merged_over(inferred)


__all__ = ["RouteRegistry", "DeclaredLike"]
