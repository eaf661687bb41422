"""Path pattern normalization, matching and conflict detection.

Accepts the common route syntaxes so routers from different frameworks land on
the same canonical form:

    /users/{id}  /users/{id:int}  /files/{rest:path}   (Starlette / FastAPI)
    /users/:id   /files/*  /files/*rest                (Express style)
    /users/<id>  /users/<int:id>  /files/<path:rest>   (Werkzeug / Flask)
    /files/{*rest}  /files/**                          (catch-all variants)

All functions are pure; patterns are immutable.
"""
from __future__ import annotations

import re
import time
from typing import Dict, Optional, Tuple
from urllib.parse import unquote

from apiconsole.models.route import Conflict, Literal, Param, RoutePattern, Segment, Wildcard

_BRACE = re.compile(r"^\{\s*(\*?)([A-Za-z_][\w]*)?\s*(?::\s*([A-Za-z_]+))?\s*\}$")
_ANGLE = re.compile(r"^<\s*(?:([A-Za-z_]+)\s*:\s*)?([A-Za-z_][\w]*)\s*>$")
_COLON = re.compile(r"^:([A-Za-z_][\w]*)(\?)?$")
_STAR = re.compile(r"^\*{1,2}([A-Za-z_][\w]*)?$")

_INT = re.compile(r"^-?\d+$")
_FLOAT = re.compile(r"^-?\d+(\.\d+)?$")
_WILDCARD_CONVERTERS = {"path"}
_CONVERTER_ALIASES = {"string": "str", "integer": "int", "number": "float"}


def _split(path: str) -> Tuple[str, ...]:
    return tuple(p for p in (path or "").split("/") if p)


def join(prefix: Optional[str], path: str) -> str:
    """Join a mount prefix and a relative route path with single slashes."""
    parts = _split(prefix or "") + _split(path)
    return "/" + "/".join(parts)


def _parse_segment(raw: str) -> Segment:
    m = _BRACE.match(raw)
    if m:
        star, name, conv = m.groups()
        conv = _CONVERTER_ALIASES.get((conv or "str").lower(), (conv or "str").lower())
        if star or conv in _WILDCARD_CONVERTERS:
            return Wildcard(name or "wildcard")
        if not name:
            raise ValueError(f"parameter segment without a name: {raw!r}")
        return Param(name, conv)
    m = _ANGLE.match(raw)
    if m:
        conv, name = m.groups()
        conv = _CONVERTER_ALIASES.get((conv or "str").lower(), (conv or "str").lower())
        if conv in _WILDCARD_CONVERTERS:
            return Wildcard(name)
        return Param(name, conv)
    m = _COLON.match(raw)
    if m:
        return Param(m.group(1))
    m = _STAR.match(raw)
    if m:
        return Wildcard(m.group(1) or "wildcard")
    return Literal(raw)


def normalize(raw: str, method: str = "GET") -> RoutePattern:
    """Convert a framework route pattern into the canonical RoutePattern.

    Raises ValueError for malformed patterns (e.g. a wildcard that is not the
    final segment).
    """
    path = (raw or "/").split("?", 1)[0]
    segments = tuple(_parse_segment(p) for p in _split(path))
    for seg in segments[:-1]:
        if isinstance(seg, Wildcard):
            raise ValueError(f"wildcard must be the last segment: {raw!r}")
    return RoutePattern(method=(method or "GET").upper(), segments=segments, raw=raw)


def _accepts(seg: Param, value: str) -> bool:
    if seg.converter == "int":
        return bool(_INT.match(value))
    if seg.converter == "float":
        return bool(_FLOAT.match(value))
    return True


def match(pattern: RoutePattern, concrete_path: str) -> Optional[Dict[str, str]]:
    """Bind `concrete_path` against `pattern`; None when it does not match."""
    parts = _split(concrete_path.split("?", 1)[0])
    bindings: Dict[str, str] = {}
    for i, seg in enumerate(pattern.segments):
        if isinstance(seg, Wildcard):
            bindings[seg.name] = "/".join(unquote(p) for p in parts[i:])
            return bindings
        if i >= len(parts):
            return None
        value = unquote(parts[i])
        if isinstance(seg, Literal):
            if seg.value != parts[i] and seg.value != value:
                return None
        elif not _accepts(seg, value):
            return None
        else:
            bindings[seg.name] = value
    if len(parts) != len(pattern.segments):
        return None
    return bindings


def _segment_covers(general: Segment, specific: Segment) -> bool:
    if isinstance(general, Literal):
        return isinstance(specific, Literal) and general.value == specific.value
    if isinstance(general, Param):
        if isinstance(specific, Wildcard):
            return False
        if general.converter == "str":
            return True
        if isinstance(specific, Param):
            return specific.converter == general.converter
        return _accepts(general, specific.value)
    return True


def covers(general: RoutePattern, specific: RoutePattern) -> bool:
    """True when every path matched by `specific` is also matched by `general`."""
    g, s = general.segments, specific.segments
    if general.has_wildcard:
        prefix = g[:-1]
        fixed = s[:-1] if specific.has_wildcard else s
        if len(fixed) < len(prefix):
            return False
        return all(_segment_covers(a, b) for a, b in zip(prefix, fixed))
    if len(g) != len(s) or specific.has_wildcard:
        return False
    return all(_segment_covers(a, b) for a, b in zip(g, s))


def _differs_in_typing(a: RoutePattern, b: RoutePattern) -> bool:
    """Same layout; only the converters of some parameters differ."""
    if len(a.segments) != len(b.segments) or a.has_wildcard or b.has_wildcard:
        return False
    return all(x == y or (isinstance(x, Param) and isinstance(y, Param)) for x, y in zip(a.segments, b.segments))


def detect_conflict(existing: RoutePattern, candidate: RoutePattern) -> Optional[Conflict]:
    """Classify how `candidate` collides with an already registered pattern.

    duplicate: same method and same canonical shape.
    shadow: same method; a wildcard-tail pattern, or an untyped parameter in
    place of a typed one, strictly covers the other pattern, so it would
    intercept traffic meant for the more specific route. Reported regardless
    of which of the two was registered first.
    """
    if existing.method != candidate.method:
        return None
    now = time.time()
    if existing.key == candidate.key:
        return Conflict("duplicate", existing.key, candidate.key, detected_at=now)
    for general, specific in ((candidate, existing), (existing, candidate)):
        if not (general.has_wildcard or _differs_in_typing(general, specific)):
            continue
        if covers(general, specific) and not covers(specific, general):
            return Conflict(
                "shadow",
                existing.key,
                candidate.key,
                general=general.key,
                specific=specific.key,
                detected_at=now,
            )
    return None


_SEGMENT_WEIGHT = {Literal: 3, Param: 1, Wildcard: 0}


def specificity(pattern: RoutePattern) -> Tuple[int, ...]:
    """Sort key: higher tuples are more specific patterns."""
    weights = []
    for seg in pattern.segments:
        w = _SEGMENT_WEIGHT[type(seg)]
        if isinstance(seg, Param) and seg.converter != "str":
            w = 2
        weights.append(w)
    # a longer literal prefix beats a wildcard that swallows the rest
    return tuple(weights) + (0 if pattern.has_wildcard else 1,)


__all__ = ["normalize", "join", "match", "covers", "detect_conflict", "specificity"]
