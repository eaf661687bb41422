"""Host adapters: turn router-like objects into (method, pattern, handler) tuples.

The registry only needs an enumerable list of route tuples. Supported inputs:

  * FastAPI / Starlette applications and ``APIRouter`` objects (anything with
    a ``.routes`` list of route objects exposing ``path``/``methods``/``endpoint``);
  * ``Mount`` routes and included-router wrappers, flattened with their prefix;
  * plain iterables of ``(method, pattern, handler)`` tuples.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, Optional, Sequence, Set, Tuple

from apiconsole.core import matcher

META_ATTR = "__console_meta__"
_IGNORED_METHODS = {"HEAD", "OPTIONS"}


@dataclass(frozen=True)
class RouteTuple:
    method: str
    pattern: str
    handler: Any
    name: Optional[str] = None
    tags: Tuple[str, ...] = ()
    meta: Dict[str, Any] = field(default_factory=dict)


def console_meta(
    *,
    params: Any = None,
    body: Any = None,
    response: Any = None,
    requires_auth: bool = False,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Attach an explicitly declared schema (and auth requirement) to a handler.

    Schemas use FieldSchema dicts or the shorthand accepted by
    ``FieldSchema.from_dict`` (``{"username": "string!"}``). Apply it below the
    route decorator so the router registers the annotated function.
    """

    def deco(fn: Callable[..., Any]) -> Callable[..., Any]:
        declared = {}
        if params is not None:
            declared["params"] = params
        if body is not None:
            declared["body"] = body
        if response is not None:
            declared["response"] = response
        setattr(fn, META_ATTR, {"declared": declared or None, "requires_auth": requires_auth})
        return fn

    return deco


def handler_meta(handler: Any) -> Dict[str, Any]:
    return dict(getattr(handler, META_ATTR, None) or {})


def _route_methods(route: Any) -> Sequence[str]:
    methods = getattr(route, "methods", None) or ()
    kept = sorted(m.upper() for m in methods if m.upper() not in _IGNORED_METHODS)
    return kept or sorted(m.upper() for m in methods)


def _framework_paths(router: Any) -> Set[str]:
    """Paths FastAPI serves for its own docs; not part of the host API."""
    attrs = ("openapi_url", "docs_url", "redoc_url", "swagger_ui_oauth2_redirect_url")
    return {p for p in (getattr(router, a, None) for a in attrs) if isinstance(p, str) and p}


def _iter_router(routes: Iterable[Any], prefix: str = "", skip: Set[str] = frozenset()) -> Iterator[RouteTuple]:
    for route in routes:
        included = getattr(route, "original_router", None)
        if included is not None:
            # newer FastAPI keeps include_router() results as one wrapper entry
            context = getattr(route, "include_context", None)
            sub_prefix = matcher.join(prefix, getattr(context, "prefix", "") or "")
            yield from _iter_router(getattr(included, "routes", ()), sub_prefix, skip)
            continue
        path = getattr(route, "path", None)
        endpoint = getattr(route, "endpoint", None)
        sub_routes = getattr(route, "routes", None)
        if path is None:
            continue
        if endpoint is None and sub_routes:
            # Mount / nested router: flatten with its own path as prefix
            yield from _iter_router(sub_routes, matcher.join(prefix, path), skip)
            continue
        if matcher.join(prefix, path) in skip:
            continue
        methods = _route_methods(route)
        if endpoint is None or not methods:
            continue
        tags = tuple(str(t) for t in (getattr(route, "tags", None) or ()))
        for method in methods:
            yield RouteTuple(
                method=method,
                pattern=matcher.join(prefix, path),
                handler=endpoint,
                name=getattr(route, "name", None),
                tags=tags,
                meta=handler_meta(endpoint),
            )


def iter_route_tuples(router: Any) -> Iterator[RouteTuple]:
    """Enumerate the routes a router-like object exposes."""
    routes = getattr(router, "routes", None)
    if routes is not None:
        yield from _iter_router(routes, skip=_framework_paths(router))
        return
    for item in router:
        if isinstance(item, RouteTuple):
            yield item
            continue
        method, pattern, handler = item[:3]
        yield RouteTuple(method=str(method).upper(), pattern=pattern, handler=handler, meta=handler_meta(handler))


__all__ = ["RouteTuple", "console_meta", "handler_meta", "iter_route_tuples", "META_ATTR"]
