from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple, Union

from apiconsole.models.schema import Confidence, SchemaSet


# ---------- Pattern segments ----------
@dataclass(frozen=True)
class Literal:
    value: str

    def render(self) -> str:
        return self.value

    def shape(self) -> str:
        return self.value


@dataclass(frozen=True)
class Param:
    name: str
    converter: str = "str"

    def render(self) -> str:
        return f"{{{self.name}}}" if self.converter == "str" else f"{{{self.name}:{self.converter}}}"

    def shape(self) -> str:
        # typed converters constrain what matches, so they stay in the key
        return "{}" if self.converter == "str" else f"{{{self.converter}}}"


@dataclass(frozen=True)
class Wildcard:
    name: str = "wildcard"

    def render(self) -> str:
        return f"{{{self.name}:path}}"

    def shape(self) -> str:
        return "*"


Segment = Union[Literal, Param, Wildcard]


@dataclass(frozen=True)
class RoutePattern:
    method: str
    segments: Tuple[Segment, ...]
    raw: str = ""

    @property
    def path(self) -> str:
        return "/" + "/".join(s.render() for s in self.segments)

    @property
    def shape(self) -> str:
        return "/" + "/".join(s.shape() for s in self.segments)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.method, self.shape)

    @property
    def has_wildcard(self) -> bool:
        return bool(self.segments) and isinstance(self.segments[-1], Wildcard)

    @property
    def param_names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.segments if isinstance(s, (Param, Wildcard)))

    def __str__(self) -> str:
        return f"{self.method} {self.path}"


RouteKey = Tuple[str, str]


def key_to_str(key: RouteKey) -> str:
    return f"{key[0]} {key[1]}"


# ---------- Handler identity ----------
@dataclass(frozen=True)
class HandlerRef:
    module: Optional[str] = None
    qualname: Optional[str] = None
    file: Optional[str] = None
    lineno: Optional[int] = None

    @property
    def name(self) -> Optional[str]:
        return self.qualname.rsplit(".", 1)[-1] if self.qualname else None

    @property
    def label(self) -> str:
        if self.module and self.qualname:
            return f"{self.module}:{self.qualname}"
        return self.qualname or self.module or "<unknown>"

    @classmethod
    def from_callable(cls, fn: Any) -> "HandlerRef":
        """Describe where `fn` is defined without calling it."""
        if isinstance(fn, HandlerRef):
            return fn
        if fn is None:
            return cls()
        try:
            target = inspect.unwrap(fn)
        except ValueError:
            target = fn
        code = getattr(target, "__code__", None)
        try:
            src = inspect.getsourcefile(target)
        except TypeError:
            src = None
        return cls(
            module=getattr(target, "__module__", None),
            qualname=getattr(target, "__qualname__", None) or getattr(target, "__name__", None),
            file=src,
            lineno=getattr(code, "co_firstlineno", None),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"module": self.module, "qualname": self.qualname, "file": self.file, "lineno": self.lineno}


# ---------- Registry entry ----------
@dataclass(frozen=True)
class RouteEntry:
    pattern: RoutePattern
    mount_prefix: str
    handler: HandlerRef
    declared: Optional[SchemaSet] = None
    inferred: Optional[SchemaSet] = None
    inferred_confidence: Confidence = Confidence.NONE
    schema: SchemaSet = field(default_factory=SchemaSet)
    requires_auth: bool = False
    name: Optional[str] = None
    tags: Tuple[str, ...] = ()
    registered_at: float = 0.0
    last_seen: float = 0.0
    seq: int = 0

    @property
    def key(self) -> RouteKey:
        return self.pattern.key

    @property
    def method(self) -> str:
        return self.pattern.method

    @property
    def path(self) -> str:
        return self.pattern.path

    @property
    def confidence(self) -> Confidence:
        if self.declared is not None and not self.declared.is_empty:
            return Confidence.EXPLICIT
        return self.inferred_confidence


@dataclass(frozen=True)
class Conflict:
    kind: str  # duplicate | shadow
    existing: RouteKey
    candidate: RouteKey
    general: Optional[RouteKey] = None
    specific: Optional[RouteKey] = None
    detected_at: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "existing": key_to_str(self.existing),
            "candidate": key_to_str(self.candidate),
            "general": key_to_str(self.general) if self.general else None,
            "specific": key_to_str(self.specific) if self.specific else None,
            "detectedAt": self.detected_at,
        }


# registration conflicts are reported as data, never raised
RegistrationConflict = Conflict


@dataclass(frozen=True)
class Resolution:
    entry: RouteEntry
    bindings: Dict[str, str]


HandlerLike = Union[HandlerRef, Callable[..., Any], None]

__all__ = [
    "Literal",
    "Param",
    "Wildcard",
    "Segment",
    "RoutePattern",
    "RouteKey",
    "key_to_str",
    "HandlerRef",
    "HandlerLike",
    "RouteEntry",
    "Conflict",
    "RegistrationConflict",
    "Resolution",
]
