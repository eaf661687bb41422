import itertools
import textwrap

from apiconsole.core import inference as inference_mod
from apiconsole.core import matcher
from apiconsole.core.inference import InferenceConfig, SchemaInferenceEngine
from apiconsole.core.sources import ControllerIndex
from apiconsole.models.route import HandlerRef
from apiconsole.models.schema import Confidence


def _write(tmp_path, source, name="handlers.py"):
    path = tmp_path / name
    path.write_text(textwrap.dedent(source), encoding="utf-8")
    return path


def _engine(tmp_path, **config):
    return SchemaInferenceEngine(ControllerIndex(tmp_path), InferenceConfig(**config))


def _ref(path, qualname):
    return HandlerRef(module="handlers", qualname=qualname, file=str(path), lineno=None)


LOGIN = '''
from fastapi import Request
from fastapi.responses import JSONResponse

async def login(request: Request):
    payload = await request.json()
    username = (payload.get("username") or "").strip()
    password = payload.get("password") or ""
    if not username or not password:
        return JSONResponse({"error": "username and password required"}, status_code=400)
    return {"ok": True, "username": username}
'''


def test_manual_json_parsing_marks_guarded_fields_required(tmp_path):
    path = _write(tmp_path, LOGIN)
    result = _engine(tmp_path).infer(_ref(path, "login"), matcher.normalize("/api/login", "POST"))
    assert result.confidence is Confidence.HIGH
    fields = result.body.fields
    assert fields["username"].kind == "string" and fields["username"].required
    assert fields["password"].kind == "string" and fields["password"].required
    assert set(result.response) == {"200", "400"}
    assert "username" in result.response["200"].fields


def test_optional_get_without_guard_is_not_required(tmp_path):
    path = _write(tmp_path, '''
    async def search(request):
        data = await request.json()
        limit = data.get("limit", 10)
        return {"limit": limit}
    ''')
    result = _engine(tmp_path).infer(_ref(path, "search"))
    assert result.confidence is Confidence.LOW
    limit = result.body.fields["limit"]
    assert limit.kind == "number"
    assert limit.required is False
    assert limit.example == 10


def test_model_annotation_gives_body_schema(tmp_path):
    path = _write(tmp_path, '''
    from typing import List, Optional
    from pydantic import BaseModel, ConfigDict, Field

    class Item(BaseModel):
        name: str
        price: float = 0.0
        tags: List[str] = Field(default_factory=list)
        note: Optional[str] = Field(None)

        model_config = ConfigDict(json_schema_extra={"example": {"name": "lamp", "price": 12.5}})

    async def create_item(item: Item):
        return {"created": True}
    ''')
    result = _engine(tmp_path).infer(_ref(path, "create_item"))
    assert result.confidence is Confidence.HIGH
    fields = result.body.fields
    assert fields["name"].required and fields["name"].kind == "string"
    assert fields["name"].example == "lamp"
    assert fields["price"].required is False and fields["price"].kind == "number"
    assert fields["tags"].kind == "array" and fields["tags"].items.kind == "string"
    assert fields["note"].required is False


def test_signature_params_split_into_path_and_query(tmp_path):
    path = _write(tmp_path, '''
    from fastapi import HTTPException

    async def get_user(user_id: int, verbose: bool = False):
        if user_id < 0:
            raise HTTPException(status_code=404, detail="user not found")
        return {"id": user_id}
    ''')
    pattern = matcher.normalize("/users/{user_id}", "GET")
    result = _engine(tmp_path).infer(_ref(path, "get_user"), pattern)
    params = result.params.fields
    assert params["user_id"].location == "path" and params["user_id"].required
    assert params["user_id"].kind == "number"
    assert params["verbose"].location == "query"
    assert params["verbose"].required is False
    assert params["verbose"].kind == "boolean"
    detail = result.response["404"].fields["detail"]
    assert detail.kind == "string" and detail.required


def test_query_accessor_without_signature_types_is_low(tmp_path):
    path = _write(tmp_path, '''
    from fastapi import Request

    async def page(request: Request):
        page = request.query_params.get("page", 1)
        return {"page": page}
    ''')
    result = _engine(tmp_path).infer(_ref(path, "page"))
    assert result.confidence is Confidence.LOW
    page = result.params.fields["page"]
    assert page.location == "query"
    assert page.kind == "number"
    assert page.example == 1


def test_literal_key_loop_marks_each_key_required(tmp_path):
    path = _write(tmp_path, '''
    from fastapi import HTTPException, Request

    async def register(request: Request):
        data = await request.json()
        for key in ("email", "password"):
            if key not in data:
                raise HTTPException(status_code=422, detail=f"{key} required")
        return {"ok": True}
    ''')
    result = _engine(tmp_path).infer(_ref(path, "register"))
    assert result.body.fields["email"].required
    assert result.body.fields["password"].required
    assert "422" in result.response


def test_conditional_access_is_not_required(tmp_path):
    path = _write(tmp_path, '''
    async def update(request):
        data = await request.json()
        if data.get("mode") == "full":
            name = data["name"]
            return {"name": name}
        return {"ok": True}
    ''')
    result = _engine(tmp_path).infer(_ref(path, "update"))
    assert result.body.fields["name"].required is False
    assert result.body.fields["mode"].kind == "string"


def test_access_after_successful_early_return_is_not_required(tmp_path):
    path = _write(tmp_path, '''
    async def update(request):
        data = await request.json()
        if data.get("mode") == "ping":
            return {"pong": True}
        name = data["name"]
        return {"name": name}
    ''')
    result = _engine(tmp_path).infer(_ref(path, "update"))
    assert result.body.fields["name"].required is False


def test_access_after_rejecting_guard_stays_required(tmp_path):
    path = _write(tmp_path, '''
    from fastapi.responses import JSONResponse

    async def update(request):
        try:
            data = await request.json()
        except ValueError:
            return JSONResponse({"error": "bad json"}, status_code=400)
        name = data["name"]
        return {"name": name}
    ''')
    result = _engine(tmp_path).infer(_ref(path, "update"))
    assert result.body.fields["name"].required is True


def test_handler_outside_controllers_root_is_none(tmp_path):
    inside = tmp_path / "controllers"
    inside.mkdir()
    path = _write(tmp_path, LOGIN, name="elsewhere.py")
    engine = SchemaInferenceEngine(ControllerIndex(inside), InferenceConfig())
    result = engine.infer(_ref(path, "login"))
    assert result.confidence is Confidence.NONE
    assert result.body is None


def test_syntax_error_degrades_to_none(tmp_path):
    path = _write(tmp_path, "def broken(:\n    pass\n")
    result = _engine(tmp_path).infer(_ref(path, "broken"))
    assert result.confidence is Confidence.NONE


def test_missing_function_degrades_to_none(tmp_path):
    path = _write(tmp_path, LOGIN)
    result = _engine(tmp_path).infer(_ref(path, "does_not_exist"))
    assert result.confidence is Confidence.NONE


def test_disabled_engine_returns_empty(tmp_path):
    path = _write(tmp_path, LOGIN)
    engine = SchemaInferenceEngine(ControllerIndex(tmp_path), InferenceConfig(), enabled=False)
    assert engine.infer(_ref(path, "login")).confidence is Confidence.NONE


def test_deadline_degrades_to_none(tmp_path, monkeypatch):
    path = _write(tmp_path, LOGIN)
    ticks = itertools.count(0, 10)
    monkeypatch.setattr(inference_mod.time, "monotonic", lambda: float(next(ticks)))
    result = _engine(tmp_path, timeout=2.0).infer(_ref(path, "login"))
    assert result.confidence is Confidence.NONE


def test_handler_without_request_access_is_none(tmp_path):
    path = _write(tmp_path, '''
    async def noop():
        pass
    ''')
    assert _engine(tmp_path).infer(_ref(path, "noop")).confidence is Confidence.NONE
