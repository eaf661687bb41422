import asyncio
import time

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from apiconsole.core.dispatcher import InvocationDispatcher
from apiconsole.core.errors import InvocationTimeout, RouteNotFound, Unauthorized
from apiconsole.core.registry import RouteRegistry
from apiconsole.core.sessions import SessionManager


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now


def build_host():
    app = FastAPI()

    @app.post("/api/login")
    async def login(request: Request):
        payload = await request.json()
        if not payload.get("username") or not payload.get("password"):
            return JSONResponse({"error": "username and password required"}, status_code=400)
        return {"ok": True}

    @app.get("/echo/{word}")
    async def echo(word: str, request: Request):
        return {
            "word": word,
            "loud": request.query_params.get("loud"),
            "session": request.headers.get("x-console-session"),
        }

    @app.get("/slow")
    async def slow():
        await asyncio.sleep(5)
        return {"done": True}

    @app.get("/blocking")
    def blocking():
        time.sleep(1.0)
        return {"done": True}

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    return app


def build(enable_auth=True, timeout=5.0, requires_auth=()):
    app = build_host()
    registry = RouteRegistry()
    for route in app.routes:
        endpoint = getattr(route, "endpoint", None)
        if endpoint is None or route.path.startswith(("/docs", "/openapi", "/redoc")):
            continue
        for method in route.methods:
            registry.register(method, route.path, handler=endpoint, requires_auth=route.path in requires_auth)
    clock = FakeClock()
    sessions = SessionManager(ttl=60, clock=clock)
    dispatcher = InvocationDispatcher(registry, sessions, host_app=app, timeout=timeout, enable_auth=enable_auth)
    return dispatcher, sessions, clock


@pytest.mark.asyncio
async def test_handler_error_status_is_returned_as_data():
    dispatcher, sessions, _ = build()
    token = sessions.issue().token
    record = await dispatcher.invoke("POST", "/api/login", body={"username": "a"}, token=token)
    assert record.status == 400
    assert record.body == {"error": "username and password required"}
    assert record.to_dict()["route"] == "POST /api/login"


@pytest.mark.asyncio
async def test_bindings_query_and_session_header_are_forwarded():
    dispatcher, sessions, _ = build()
    token = sessions.issue().token
    record = await dispatcher.invoke("get", "/echo/hi?loud=yes", token=token)
    assert record.status == 200
    assert record.bindings == {"word": "hi"}
    assert record.body == {"word": "hi", "loud": "yes", "session": token}
    assert record.duration_ms >= 0


@pytest.mark.asyncio
async def test_unregistered_path_is_not_found_before_auth():
    dispatcher, _, _ = build()
    with pytest.raises(RouteNotFound):
        await dispatcher.invoke("GET", "/nowhere")
    with pytest.raises(RouteNotFound):
        await dispatcher.invoke("DELETE", "/api/login")


@pytest.mark.asyncio
async def test_every_session_failure_is_unauthorized():
    dispatcher, sessions, clock = build()
    revoked = sessions.issue().token
    sessions.revoke(revoked)
    expiring = sessions.issue().token
    clock.now += 120
    for token in (None, "forged", revoked, expiring):
        with pytest.raises(Unauthorized) as excinfo:
            await dispatcher.invoke("GET", "/echo/x", token=token)
        assert excinfo.value.code == "unauthorized"
    assert dispatcher.open_connections == 0


@pytest.mark.asyncio
async def test_auth_disabled_still_honours_requires_auth():
    dispatcher, sessions, _ = build(enable_auth=False, requires_auth=("/boom",))
    record = await dispatcher.invoke("GET", "/echo/open")
    assert record.status == 200
    assert record.body["session"] is None
    with pytest.raises(Unauthorized):
        await dispatcher.invoke("GET", "/boom")


@pytest.mark.asyncio
async def test_timeout_releases_the_connection():
    dispatcher, sessions, _ = build(timeout=0.2)
    token = sessions.issue().token
    assert dispatcher.open_connections == 0
    with pytest.raises(InvocationTimeout) as excinfo:
        await dispatcher.invoke("GET", "/slow", token=token)
    assert excinfo.value.code == "timeout"
    assert dispatcher.open_connections == 0


@pytest.mark.asyncio
async def test_sync_handler_past_budget_times_out():
    dispatcher, sessions, _ = build(timeout=0.2)
    token = sessions.issue().token
    t0 = time.perf_counter()
    with pytest.raises(InvocationTimeout):
        await dispatcher.invoke("GET", "/blocking", token=token)
    assert time.perf_counter() - t0 < 0.9
    assert dispatcher.open_connections == 0


@pytest.mark.asyncio
async def test_host_exception_becomes_500_result():
    dispatcher, sessions, _ = build()
    token = sessions.issue().token
    record = await dispatcher.invoke("GET", "/boom", token=token)
    assert record.status == 500
    assert dispatcher.open_connections == 0


@pytest.mark.asyncio
async def test_dispatch_does_not_mutate_registry():
    dispatcher, sessions, _ = build()
    token = sessions.issue().token
    before = dispatcher.registry.list()
    await dispatcher.invoke("POST", "/api/login", body={"username": "a", "password": "b"}, token=token)
    assert dispatcher.registry.list() == before
