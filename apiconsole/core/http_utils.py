"""HTTP client helpers for forwarding console test invocations.

Provides a single coroutine-aware factory to obtain an httpx.AsyncClient that
either talks to the host ASGI app in-process or to a remote base URL. Tests
may monkeypatch ``httpx.AsyncClient`` with an async factory, in which case the
constructor returns a coroutine that must be awaited first.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

DEFAULT_TIMEOUT = 15.0
INTERNAL_BASE_URL = "http://host.internal"


def host_transport(app: Any) -> httpx.ASGITransport:
    """In-process transport; app exceptions become 500 responses, not raises."""
    return httpx.ASGITransport(app=app, raise_app_exceptions=False)


async def ensure_async_client(
    *,
    app: Any = None,
    base_url: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    follow_redirects: bool = False,
    http2: bool = False,
    timeout: float = DEFAULT_TIMEOUT,
    **extra: Any,
) -> httpx.AsyncClient:
    """Return a real httpx.AsyncClient bound to the host app or a base URL.

    Any additional keyword arguments are passed through to ``httpx.AsyncClient``.
    """
    if app is not None:
        extra.setdefault("transport", host_transport(app))
    else:
        extra.setdefault("http2", http2)
    created = httpx.AsyncClient(
        base_url=base_url or INTERNAL_BASE_URL,
        headers=headers,
        follow_redirects=follow_redirects,
        timeout=timeout,
        **extra,
    )
    if hasattr(created, "__await__"):
        created = await created  # type: ignore[assignment]
    return created  # type: ignore[return-value]


async def aclose_safely(client: httpx.AsyncClient) -> None:
    """Close the client without masking an earlier error (e.g. a timeout)."""
    try:  # pragma: no cover - defensive
        await client.aclose()  # type: ignore[attr-defined]
    except Exception:
        pass


def decode_body(response: httpx.Response) -> Any:
    """JSON when the response says so (and parses), text otherwise."""
    ctype = response.headers.get("content-type", "")
    if "json" in ctype:
        try:
            return response.json()
        except ValueError:
            pass
    return response.text


__all__ = ["ensure_async_client", "aclose_safely", "host_transport", "decode_body", "DEFAULT_TIMEOUT"]
