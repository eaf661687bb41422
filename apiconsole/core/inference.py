"""Static schema inference for route handlers.

Given a handler reference, the engine locates the function in the controller
sources and walks its AST to recover:

  * parameters (path / query / header) from the signature and from request
    accessors such as ``request.query_params.get("q")``;
  * the request body, either from a model annotation or from field access on
    the parsed JSON payload (``payload.get("name")``, ``payload["id"]``);
  * response variants from ``return`` statements, response classes and raised
    HTTP errors, keyed by status code.

Nothing is imported or executed. The engine is best effort and never raises:
any failure (unreadable source, syntax error, deadline) yields an empty result
with confidence ``none``. False negatives are preferred over guesses, so a
field is only marked required when the code rejects requests without it.
"""
from __future__ import annotations

import ast
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from apiconsole.core.errors import InferenceDeadline
from apiconsole.core.logging import get_logger
from apiconsole.core.sources import ControllerIndex, FunctionNode
from apiconsole.models.route import HandlerLike, HandlerRef, RoutePattern
from apiconsole.models.schema import Confidence, FieldSchema, SchemaSet, merge_fields

logger = get_logger("inference")

# ---------- Static vocabularies ----------
_SCALAR_KINDS = {
    "str": "string",
    "bytes": "string",
    "EmailStr": "string",
    "HttpUrl": "string",
    "AnyUrl": "string",
    "UUID": "string",
    "datetime": "string",
    "date": "string",
    "time": "string",
    "Path": "string",
    "int": "number",
    "float": "number",
    "Decimal": "number",
    "bool": "boolean",
    "dict": "object",
    "Dict": "object",
    "Mapping": "object",
    "MutableMapping": "object",
    "list": "array",
    "List": "array",
    "Sequence": "array",
    "set": "array",
    "Set": "array",
    "tuple": "array",
    "Tuple": "array",
    "Any": "unknown",
}
_WRAPPER_KINDS = {"str": "string", "int": "number", "float": "number", "bool": "boolean", "list": "array", "dict": "object"}
_STRING_METHODS = {
    "strip", "lstrip", "rstrip", "lower", "upper", "title", "split", "startswith",
    "endswith", "replace", "encode", "casefold", "isdigit", "format",
}
_MAPPING_METHODS = {"items", "keys", "values"}
_PASSTHROUGH_CALLS = {"loads", "parse_obj", "model_validate"}
_MARKER_LOCATIONS = {
    "Query": "query",
    "Path": "path",
    "Header": "header",
    "Cookie": "header",
    "Body": "body",
    "Form": "body",
    "File": "body",
}
_SKIP_MARKERS = {"Depends", "Security"}
_FRAMEWORK_TYPES = {
    "Request", "Response", "BackgroundTasks", "WebSocket", "HTTPConnection",
    "UploadFile", "Session", "SecurityScopes",
}
_UNWRAP_GENERICS = {"Optional", "Annotated", "Union"}
_STATUS_ATTR = re.compile(r"HTTP_(\d{3})")


@dataclass(frozen=True)
class InferenceConfig:
    request_names: Tuple[str, ...] = ("request", "req")
    body_accessors: Tuple[str, ...] = ("json", "form", "body")
    query_accessors: Tuple[str, ...] = ("query_params",)
    path_accessors: Tuple[str, ...] = ("path_params",)
    header_accessors: Tuple[str, ...] = ("headers", "cookies")
    response_emitters: Tuple[str, ...] = ("JSONResponse", "Response", "HTMLResponse", "PlainTextResponse")
    error_emitters: Tuple[str, ...] = ("HTTPException",)
    timeout: float = 2.0

    @classmethod
    def from_settings(cls, settings: Any) -> "InferenceConfig":
        return cls(
            request_names=tuple(settings.request_names),
            body_accessors=tuple(settings.body_accessors),
            query_accessors=tuple(settings.query_accessors),
            path_accessors=tuple(settings.path_accessors),
            header_accessors=tuple(settings.header_accessors),
            response_emitters=tuple(settings.response_emitters),
            error_emitters=tuple(settings.error_emitters),
            timeout=float(settings.inference_timeout),
        )

    def accessor_location(self, attr: str) -> Optional[str]:
        if attr in self.query_accessors:
            return "query"
        if attr in self.path_accessors:
            return "path"
        if attr in self.header_accessors:
            return "header"
        return None


@dataclass(frozen=True)
class InferenceResult:
    params: FieldSchema = field(default_factory=FieldSchema.object)
    body: Optional[FieldSchema] = None
    response: Dict[str, FieldSchema] = field(default_factory=dict)
    confidence: Confidence = Confidence.NONE

    @classmethod
    def empty(cls) -> "InferenceResult":
        return cls()

    def as_schema_set(self) -> SchemaSet:
        return SchemaSet(params=self.params, body=self.body, response=dict(self.response))


# ---------- Mutable shape builder (frozen into FieldSchema at the end) ----------
class _Shape:
    __slots__ = ("kind", "required", "fields", "items", "example", "location")

    def __init__(self, kind: str = "unknown", location: Optional[str] = None):
        self.kind = kind
        self.required = False
        self.fields: Dict[str, "_Shape"] = {}
        self.items: Optional["_Shape"] = None
        self.example: Any = None
        self.location = location

    def hint(self, kind: Optional[str]) -> "_Shape":
        if kind and kind != "unknown" and self.kind == "unknown":
            self.kind = kind
        return self

    def child(self, name: str) -> "_Shape":
        self.hint("object")
        if name not in self.fields:
            self.fields[name] = _Shape(location=self.location)
        return self.fields[name]

    def element(self) -> "_Shape":
        self.hint("array")
        if self.items is None:
            self.items = _Shape()
        return self.items

    def freeze(self) -> FieldSchema:
        return FieldSchema(
            kind=self.kind,
            fields={k: v.freeze() for k, v in self.fields.items()},
            items=self.items.freeze() if self.items is not None else None,
            required=self.required,
            example=self.example,
            location=self.location,
        )


def _constant_kind(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, (str, bytes)):
        return "string"
    return None


def _literal_kind(node: ast.AST) -> Optional[str]:
    if isinstance(node, ast.Constant):
        return _constant_kind(node.value)
    if isinstance(node, ast.Dict):
        return "object"
    if isinstance(node, (ast.List, ast.Tuple, ast.Set, ast.ListComp)):
        return "array"
    if isinstance(node, ast.JoinedStr):
        return "string"
    return None


def _call_name(node: ast.AST) -> Optional[str]:
    func = node.func if isinstance(node, ast.Call) else node
    if isinstance(func, ast.Name):
        return func.id
    if isinstance(func, ast.Attribute):
        return func.attr
    return None


def _const_str(node: Optional[ast.AST]) -> Optional[str]:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value
    return None


def _status_value(node: Optional[ast.AST]) -> Optional[int]:
    if isinstance(node, ast.Constant) and isinstance(node.value, int) and not isinstance(node.value, bool):
        return node.value
    if isinstance(node, ast.Attribute):
        m = _STATUS_ATTR.search(node.attr)
        if m:
            return int(m.group(1))
    return None


def _keyword(call: ast.Call, name: str) -> Optional[ast.AST]:
    for kw in call.keywords:
        if kw.arg == name:
            return kw.value
    return None


def _safe_literal(node: ast.AST) -> Any:
    try:
        return ast.literal_eval(node)
    except (ValueError, TypeError, SyntaxError, MemoryError, RecursionError):
        return None


# ---------- Module-level model discovery ----------
class _ModelCatalog:
    """Pydantic models and dataclasses declared in the handler's module."""

    def __init__(self, tree: ast.Module):
        self.classes: Dict[str, ast.ClassDef] = {}
        candidates = [n for n in tree.body if isinstance(n, ast.ClassDef)]
        changed = True
        while changed:
            changed = False
            for cls in candidates:
                if cls.name not in self.classes and self._is_model(cls):
                    self.classes[cls.name] = cls
                    changed = True

    def _is_model(self, cls: ast.ClassDef) -> bool:
        for base in cls.bases:
            base_name = _call_name(base)
            if base_name in ("BaseModel", "BaseSettings") or base_name in self.classes:
                return True
        return any(_call_name(d) == "dataclass" for d in cls.decorator_list)

    def __contains__(self, name: Optional[str]) -> bool:
        return name in self.classes

    def schema(self, name: str, seen: Tuple[str, ...] = ()) -> FieldSchema:
        cls = self.classes[name]
        if name in seen:
            return FieldSchema.object()
        fields: Dict[str, FieldSchema] = {}
        for base in cls.bases:
            base_name = _call_name(base)
            if base_name in self.classes:
                fields.update(self.schema(base_name, seen + (name,)).fields)  # type: ignore[arg-type]
        examples = self._examples(cls)
        for stmt in cls.body:
            if not isinstance(stmt, ast.AnnAssign) or not isinstance(stmt.target, ast.Name):
                continue
            fname = stmt.target.id
            if fname == "model_config" or _call_name(stmt.annotation) == "ClassVar":
                continue
            base = annotation_schema(stmt.annotation, self, seen + (name,))
            fields[fname] = FieldSchema(
                kind=base.kind,
                fields=base.fields,
                items=base.items,
                required=self._required(stmt.value),
                example=examples.get(fname, base.example),
            )
        return FieldSchema.object(fields)

    @staticmethod
    def _required(default: Optional[ast.AST]) -> bool:
        if default is None:
            return True
        if isinstance(default, ast.Call) and _call_name(default) == "Field":
            if default.args:
                first = default.args[0]
                return isinstance(first, ast.Constant) and first.value is Ellipsis
            return _keyword(default, "default") is None and _keyword(default, "default_factory") is None
        return False

    @staticmethod
    def _examples(cls: ast.ClassDef) -> Dict[str, Any]:
        """Read ``model_config = ConfigDict(json_schema_extra={"example": {...}})``."""
        for stmt in cls.body:
            if not isinstance(stmt, (ast.Assign, ast.AnnAssign)):
                continue
            value = stmt.value
            if not isinstance(value, ast.Call):
                continue
            extra = _keyword(value, "json_schema_extra")
            if extra is None:
                continue
            data = _safe_literal(extra)
            if isinstance(data, dict) and isinstance(data.get("example"), dict):
                return data["example"]
        return {}


def annotation_schema(ann: Optional[ast.AST], models: Optional[_ModelCatalog] = None, seen: Tuple[str, ...] = ()) -> FieldSchema:
    """Map a type annotation expression onto a FieldSchema."""
    if ann is None:
        return FieldSchema()
    if isinstance(ann, ast.Constant) and isinstance(ann.value, str):
        try:
            ann = ast.parse(ann.value, mode="eval").body
        except SyntaxError:
            return FieldSchema()
    if isinstance(ann, ast.BinOp) and isinstance(ann.op, ast.BitOr):
        for side in (ann.left, ann.right):
            if not (isinstance(side, ast.Constant) and side.value is None):
                return annotation_schema(side, models, seen)
        return FieldSchema()
    if isinstance(ann, ast.Subscript):
        base = _call_name(ann.value)
        inner = ann.slice
        args = list(inner.elts) if isinstance(inner, ast.Tuple) else [inner]
        if base in _UNWRAP_GENERICS:
            for arg in args:
                if not (isinstance(arg, ast.Constant) and arg.value is None):
                    return annotation_schema(arg, models, seen)
            return FieldSchema()
        if base == "Literal" and args:
            first = args[0]
            value = first.value if isinstance(first, ast.Constant) else None
            return FieldSchema(kind=_constant_kind(value) or "unknown", example=value)
        kind = _SCALAR_KINDS.get(base or "", "unknown")
        if kind == "array":
            return FieldSchema(kind="array", items=annotation_schema(args[0], models, seen) if args else None)
        return FieldSchema(kind=kind)
    name = _call_name(ann)
    if models is not None and name in models:
        return models.schema(name, seen)  # type: ignore[arg-type]
    return FieldSchema(kind=_SCALAR_KINDS.get(name or "", "unknown"))


# ---------- Handler walker ----------
class _HandlerAnalysis(ast.NodeVisitor):
    def __init__(
        self,
        tree: ast.Module,
        func: FunctionNode,
        config: InferenceConfig,
        path_params: Iterable[str],
        deadline: float,
    ):
        self.func = func
        self.config = config
        self.path_params = set(path_params)
        self.deadline = deadline
        self.models = _ModelCatalog(tree)

        self.roots: Dict[str, _Shape] = {
            "path": _Shape("object", "path"),
            "query": _Shape("object", "query"),
            "header": _Shape("object", "header"),
        }
        self.params = _Shape("object")
        self.body: Optional[_Shape] = None
        self.body_model: Optional[FieldSchema] = None
        self.request_vars: Set[str] = set()
        self.aliases: Dict[str, _Shape] = {}
        self.locals: Dict[str, ast.AST] = {}
        self.loop_keys: Dict[str, List[str]] = {}
        self.variants: List[Tuple[int, FieldSchema]] = []
        self.response_model: Optional[FieldSchema] = None
        self.success_status = 200
        self.depth = 0
        self.explicit = False
        self.accessed = False

    # -- plumbing --
    def visit(self, node: ast.AST) -> Any:
        if time.monotonic() > self.deadline:
            raise InferenceDeadline("inference deadline exceeded")
        return super().visit(node)

    def _nested(self, nodes: Iterable[ast.AST], bump: int = 1) -> None:
        self.depth += bump
        try:
            for n in nodes:
                self.visit(n)
        finally:
            self.depth -= bump

    def body_root(self) -> _Shape:
        if self.body is None:
            self.body = _Shape("object", None)
        return self.body

    # -- signature --
    def analyze_signature(self) -> None:
        args = self.func.args
        positional = list(args.posonlyargs) + list(args.args)
        defaults: List[Optional[ast.AST]] = [None] * (len(positional) - len(args.defaults)) + list(args.defaults)
        pairs = list(zip(positional, defaults)) + list(zip(args.kwonlyargs, args.kw_defaults))
        for arg, default in pairs:
            self._classify_param(arg, default)

    def _classify_param(self, arg: ast.arg, default: Optional[ast.AST]) -> None:
        name = arg.arg
        ann_name = _call_name(arg.annotation) if arg.annotation is not None else None
        if isinstance(arg.annotation, ast.Subscript) and ann_name in _UNWRAP_GENERICS:
            inner = arg.annotation.slice
            first = inner.elts[0] if isinstance(inner, ast.Tuple) else inner
            ann_name = _call_name(first) or ann_name
        if name in ("self", "cls"):
            return
        if ann_name == "Request" or (arg.annotation is None and name in self.config.request_names):
            self.request_vars.add(name)
            return
        if ann_name in _FRAMEWORK_TYPES:
            return

        marker = _call_name(default) if isinstance(default, ast.Call) else None
        if marker in _SKIP_MARKERS:
            return
        location = _MARKER_LOCATIONS.get(marker or "")
        field_name = name
        required = default is None
        if isinstance(default, ast.Call) and location:
            alias = _const_str(_keyword(default, "alias"))
            field_name = alias or name
            first = default.args[0] if default.args else _keyword(default, "default")
            required = first is None or (isinstance(first, ast.Constant) and first.value is Ellipsis)

        schema = annotation_schema(arg.annotation, self.models)
        if ann_name in self.models and location in (None, "body"):
            self.body_model = schema
            self.explicit = True
            return
        if location is None:
            if name in self.path_params:
                location, required = "path", True
            elif schema.kind in ("object", "unknown") and ann_name in ("Dict", "dict", "Mapping", "Any"):
                # untyped JSON payload: track field access on it
                self.aliases[name] = self.body_root()
                return
            elif arg.annotation is None and default is None:
                return
            else:
                location = "query"
        self.explicit = True
        target = self.body_root() if location == "body" else self.roots[location]
        shape = target.child(field_name)
        shape.hint(schema.kind)
        shape.required = shape.required or required
        if isinstance(default, ast.Constant) and default.value is not None:
            shape.example = default.value
            shape.hint(_constant_kind(default.value))
        self.accessed = True

    def analyze_decorators(self) -> None:
        for dec in self.func.decorator_list:
            if not isinstance(dec, ast.Call):
                continue
            status = _status_value(_keyword(dec, "status_code"))
            if status:
                self.success_status = status
            model = _keyword(dec, "response_model")
            if model is not None and not (isinstance(model, ast.Constant) and model.value is None):
                schema = annotation_schema(model, self.models)
                if not schema.is_empty or schema.kind == "array":
                    self.response_model = schema
                    self.explicit = True

    # -- reference resolution --
    def ref(self, node: Optional[ast.AST]) -> Optional[_Shape]:
        """Resolve an expression to the request shape it reads, recording hints."""
        if node is None:
            return None
        if isinstance(node, ast.Await):
            return self.ref(node.value)
        if isinstance(node, ast.Name):
            return self.aliases.get(node.id)
        if isinstance(node, ast.Attribute):
            if isinstance(node.value, ast.Name) and node.value.id in self.request_vars:
                location = self.config.accessor_location(node.attr)
                if location:
                    return self.roots[location]
            return None
        if isinstance(node, ast.Subscript):
            owner = self.ref(node.value)
            if owner is None:
                return None
            key = _const_str(node.slice)
            if key is not None:
                self.accessed = True
                return owner.child(key)
            if isinstance(node.slice, ast.Name) and node.slice.id in self.loop_keys:
                for k in self.loop_keys[node.slice.id]:
                    owner.child(k)
                self.accessed = True
            return None
        if isinstance(node, ast.BoolOp) and isinstance(node.op, ast.Or):
            shape = self.ref(node.values[0])
            if shape is not None:
                for alt in node.values[1:]:
                    shape.hint(_literal_kind(alt))
            return shape
        if isinstance(node, ast.Call):
            return self._ref_call(node)
        return None

    def _ref_call(self, node: ast.Call) -> Optional[_Shape]:
        func = node.func
        if isinstance(func, ast.Attribute):
            owner_node = func.value
            if (
                isinstance(owner_node, ast.Name)
                and owner_node.id in self.request_vars
                and func.attr in self.config.body_accessors
            ):
                self.accessed = True
                return self.body_root()
            if func.attr == "get" and node.args:
                owner = self.ref(owner_node)
                key = _const_str(node.args[0])
                if owner is not None and key is not None:
                    self.accessed = True
                    shape = owner.child(key)
                    if len(node.args) > 1:
                        shape.hint(_literal_kind(node.args[1]))
                        if isinstance(node.args[1], ast.Constant) and node.args[1].value not in (None, ""):
                            shape.example = shape.example if shape.example is not None else node.args[1].value
                    return shape
                return None
            if func.attr in _STRING_METHODS:
                shape = self.ref(owner_node)
                return shape.hint("string") if shape is not None else None
            if func.attr in _MAPPING_METHODS:
                shape = self.ref(owner_node)
                if shape is not None:
                    shape.hint("object")
                return None
            if func.attr in _PASSTHROUGH_CALLS and node.args:
                return self.ref(node.args[0])
            return None
        if isinstance(func, ast.Name) and node.args:
            if func.id in _WRAPPER_KINDS:
                shape = self.ref(node.args[0])
                return shape.hint(_WRAPPER_KINDS[func.id]) if shape is not None else None
        return None

    # -- validation guards --
    def guarded(self, test: ast.AST, negated: bool = True) -> List[_Shape]:
        """Shapes whose absence makes `test` true (negated) or false (asserted)."""
        out: List[_Shape] = []
        if isinstance(test, ast.UnaryOp) and isinstance(test.op, ast.Not):
            inner = test.operand
            if isinstance(inner, ast.BoolOp) and isinstance(inner.op, ast.And) and negated:
                for v in inner.values:
                    out.extend(self.guarded(v, negated=False))
                return out
            return self.guarded(inner, negated=not negated)
        if isinstance(test, ast.BoolOp):
            wanted = ast.Or if negated else ast.And
            if isinstance(test.op, wanted):
                for v in test.values:
                    out.extend(self.guarded(v, negated))
            return out
        if isinstance(test, ast.Compare) and len(test.ops) == 1:
            op, right = test.ops[0], test.comparators[0]
            absent = (ast.NotIn, ast.Is) if negated else (ast.In, ast.IsNot)
            if isinstance(op, absent[0]):
                owner = self.ref(right)
                if owner is not None:
                    keys = self._keys_of(test.left)
                    out.extend(owner.child(k) for k in keys)
            elif isinstance(op, absent[1]) and isinstance(right, ast.Constant) and right.value is None:
                shape = self.ref(test.left)
                if shape is not None:
                    out.append(shape)
            return out
        if isinstance(test, ast.Call) and _call_name(test) == "isinstance" and len(test.args) == 2:
            shape = self.ref(test.args[0])
            if shape is not None:
                shape.hint(_SCALAR_KINDS.get(_call_name(test.args[1]) or "", "unknown"))
                if not negated:
                    out.append(shape)
            return out
        if not negated:
            shape = self.ref(test)
            return [shape] if shape is not None else []
        return out

    def _keys_of(self, node: ast.AST) -> List[str]:
        key = _const_str(node)
        if key is not None:
            return [key]
        if isinstance(node, ast.Name) and node.id in self.loop_keys:
            return list(self.loop_keys[node.id])
        return []

    def _rejects(self, body: Sequence[ast.stmt]) -> bool:
        for stmt in body:
            if isinstance(stmt, ast.Raise):
                return True
            if isinstance(stmt, ast.Return) and stmt.value is not None:
                status = self._response_status(stmt.value)
                if status is not None and status >= 400:
                    return True
            if isinstance(stmt, ast.Expr) and isinstance(stmt.value, ast.Call) and _call_name(stmt.value) == "abort":
                return True
        return False

    def _mark_required(self, shapes: Iterable[_Shape]) -> None:
        for shape in shapes:
            shape.required = True
            self.explicit = True

    # -- statements --
    def _exits_early(self, stmts: Sequence[ast.stmt]) -> bool:
        """True when some accepted request can leave the handler inside `stmts`."""
        for stmt in stmts:
            if isinstance(stmt, (ast.Return, ast.Raise)):
                return True
            if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                continue
            blocks = [getattr(stmt, "orelse", None) or [], getattr(stmt, "finalbody", None) or []]
            body = getattr(stmt, "body", None)
            if isinstance(body, list) and not (isinstance(stmt, ast.If) and self._rejects(body)):
                blocks.append(body)
            for handler in getattr(stmt, "handlers", None) or []:
                if not self._rejects(handler.body):
                    blocks.append(handler.body)
            if any(self._exits_early(b) for b in blocks):
                return True
        return False

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        if node is self.func:
            base = self.depth
            try:
                for stmt in node.body:
                    self.visit(stmt)
                    # after a non-rejecting early exit, later statements only run for some requests
                    if self.depth == base and self._exits_early([stmt]) and not isinstance(stmt, (ast.Return, ast.Raise)):
                        self.depth += 1
            finally:
                self.depth = base

    visit_AsyncFunctionDef = visit_FunctionDef  # type: ignore[assignment]

    def visit_Lambda(self, node: ast.Lambda) -> None:
        return None

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        return None

    def visit_Assign(self, node: ast.Assign) -> None:
        self.visit(node.value)
        shape = self.ref(node.value)
        for target in node.targets:
            if isinstance(target, ast.Name):
                self._bind(target.id, shape, node.value)
            else:
                self.visit(target)

    def visit_AnnAssign(self, node: ast.AnnAssign) -> None:
        if node.value is None:
            return
        self.visit(node.value)
        if isinstance(node.target, ast.Name):
            self._bind(node.target.id, self.ref(node.value), node.value)

    def _bind(self, name: str, shape: Optional[_Shape], value: ast.AST) -> None:
        if shape is not None:
            self.aliases[name] = shape
        else:
            self.aliases.pop(name, None)
            self.locals[name] = value

    def visit_If(self, node: ast.If) -> None:
        self.visit(node.test)
        rejecting = self._rejects(node.body)
        if rejecting and self.depth == 0:
            self._mark_required(self.guarded(node.test))
        self._nested(node.body)
        # past a rejecting branch the else-chain runs for every accepted request
        self._nested(node.orelse, bump=0 if rejecting else 1)

    def visit_Assert(self, node: ast.Assert) -> None:
        self.visit(node.test)
        if self.depth == 0:
            self._mark_required(self.guarded(node.test, negated=False))

    def visit_For(self, node: ast.For) -> None:
        self.visit(node.iter)
        keys = None
        if isinstance(node.iter, (ast.List, ast.Tuple)) and node.iter.elts:
            keys = [_const_str(e) for e in node.iter.elts]
            if any(k is None for k in keys):
                keys = None
        if keys and isinstance(node.target, ast.Name):
            # literal key list: the body runs unconditionally for each key
            self.loop_keys[node.target.id] = keys  # type: ignore[assignment]
            try:
                self._nested(node.body, bump=0)
            finally:
                self.loop_keys.pop(node.target.id, None)
            self._nested(node.orelse)
            return
        owner = self.ref(node.iter)
        if owner is not None and isinstance(node.target, ast.Name):
            self.aliases[node.target.id] = owner.element()
        self._nested(node.body)
        self._nested(node.orelse)

    visit_AsyncFor = visit_For  # type: ignore[assignment]

    def visit_While(self, node: ast.While) -> None:
        self.visit(node.test)
        self._nested(node.body)
        self._nested(node.orelse)

    def visit_Try(self, node: ast.Try) -> None:
        self._nested(node.body)
        for handler in node.handlers:
            self._nested(handler.body)
        self._nested(node.orelse)
        self.visit_list(node.finalbody)

    visit_TryStar = visit_Try  # type: ignore[assignment]

    def visit_list(self, nodes: Iterable[ast.AST]) -> None:
        for n in nodes:
            self.visit(n)

    def visit_Return(self, node: ast.Return) -> None:
        if node.value is None:
            return
        self.visit(node.value)
        status = self._response_status(node.value) or self.success_status
        if self.response_model is not None and status == self.success_status:
            return
        schema = self._response_shape(node.value)
        if schema is not None:
            self.variants.append((status, schema))

    def visit_Raise(self, node: ast.Raise) -> None:
        exc = node.exc
        if isinstance(exc, ast.Call) and _call_name(exc) in self.config.error_emitters:
            self.visit(exc)
            status = _status_value(_keyword(exc, "status_code")) or (
                _status_value(exc.args[0]) if exc.args else None
            )
            detail = _keyword(exc, "detail") or (exc.args[1] if len(exc.args) > 1 else None)
            detail_schema = self.value_shape(detail) if detail is not None else FieldSchema(kind="string")
            self.variants.append(
                (status or 500, FieldSchema.object({"detail": _with_required(detail_schema)}))
            )

    # -- expressions --
    def visit_Subscript(self, node: ast.Subscript) -> None:
        if isinstance(node.ctx, ast.Load):
            shape = self.ref(node)
            # unconditional key access fails the request when the key is absent
            if shape is not None and self.depth == 0:
                shape.required = True
        self.generic_visit(node)

    def visit_Call(self, node: ast.Call) -> None:
        self.ref(node)
        if _call_name(node) == "isinstance" and len(node.args) == 2:
            self.guarded(node, negated=True)
        self.generic_visit(node)

    def visit_Compare(self, node: ast.Compare) -> None:
        shape = self.ref(node.left)
        if shape is not None:
            for comp in node.comparators:
                if isinstance(comp, ast.Constant) and comp.value is not None:
                    shape.hint(_constant_kind(comp.value))
        self.generic_visit(node)

    def visit_BoolOp(self, node: ast.BoolOp) -> None:
        self.ref(node)
        self.visit(node.values[0])
        self._nested(node.values[1:])

    def visit_IfExp(self, node: ast.IfExp) -> None:
        self.visit(node.test)
        self._nested([node.body, node.orelse])

    # -- responses --
    def _response_status(self, value: ast.AST) -> Optional[int]:
        if isinstance(value, ast.Call) and _call_name(value) in self.config.response_emitters:
            status = _status_value(_keyword(value, "status_code"))
            if status is None and len(value.args) > 1:
                status = _status_value(value.args[1])
            return status or 200
        if isinstance(value, ast.Tuple) and len(value.elts) >= 2:
            return _status_value(value.elts[1])
        return None

    def _response_shape(self, value: ast.AST) -> Optional[FieldSchema]:
        if isinstance(value, ast.Constant) and value.value is None:
            return None
        if isinstance(value, ast.Call) and _call_name(value) in self.config.response_emitters:
            name = _call_name(value)
            content = value.args[0] if value.args else _keyword(value, "content")
            if name in ("HTMLResponse", "PlainTextResponse"):
                return FieldSchema(kind="string")
            return self.value_shape(content) if content is not None else FieldSchema()
        if isinstance(value, ast.Tuple) and len(value.elts) >= 2 and _status_value(value.elts[1]):
            return self.value_shape(value.elts[0])
        return self.value_shape(value)

    def value_shape(self, node: Optional[ast.AST], seen: Tuple[str, ...] = ()) -> FieldSchema:
        """Shape of a value expression appearing in a response."""
        if node is None:
            return FieldSchema()
        if isinstance(node, ast.Constant):
            kind = _constant_kind(node.value)
            return FieldSchema(kind=kind or "unknown", example=node.value if kind else None)
        if isinstance(node, ast.Dict):
            fields: Dict[str, FieldSchema] = {}
            for k, v in zip(node.keys, node.values):
                key = _const_str(k) if k is not None else None
                if key is None:
                    continue
                fields[key] = _with_required(self.value_shape(v, seen))
            return FieldSchema.object(fields)
        if isinstance(node, (ast.List, ast.Tuple, ast.Set)):
            items = self.value_shape(node.elts[0], seen) if node.elts else None
            return FieldSchema(kind="array", items=items)
        if isinstance(node, (ast.ListComp, ast.SetComp, ast.GeneratorExp)):
            return FieldSchema(kind="array", items=self.value_shape(node.elt, seen))
        if isinstance(node, ast.DictComp):
            return FieldSchema.object()
        if isinstance(node, ast.JoinedStr):
            return FieldSchema(kind="string")
        if isinstance(node, ast.Compare):
            return FieldSchema(kind="boolean")
        if isinstance(node, ast.Name):
            shape = self.aliases.get(node.id)
            if shape is not None:
                return _strip_required(shape.freeze())
            if node.id in self.locals and node.id not in seen:
                return self.value_shape(self.locals[node.id], seen + (node.id,))
            return FieldSchema()
        if isinstance(node, ast.Call):
            name = _call_name(node)
            if name in self.models:
                return self.models.schema(name)  # type: ignore[arg-type]
            if name == "dict" and node.keywords:
                return FieldSchema.object(
                    {kw.arg: _with_required(self.value_shape(kw.value, seen)) for kw in node.keywords if kw.arg}
                )
            if name in _WRAPPER_KINDS:
                return FieldSchema(kind=_WRAPPER_KINDS[name])
            if name in ("len", "sum", "round", "abs"):
                return FieldSchema(kind="number")
            shape = self.ref(node)
            if shape is not None:
                return _strip_required(shape.freeze())
            return FieldSchema()
        shape = self.ref(node)
        if shape is not None:
            return _strip_required(shape.freeze())
        return FieldSchema()

    # -- result --
    def run(self) -> InferenceResult:
        self.analyze_decorators()
        self.analyze_signature()
        self.visit(self.func)

        params = FieldSchema.object(
            {
                name: shape.freeze()
                for loc in ("path", "query", "header")
                for name, shape in self.roots[loc].fields.items()
            }
        )
        body: Optional[FieldSchema] = None
        if self.body_model is not None:
            body = self.body_model
            if self.body is not None:
                body = merge_fields(body, self.body.freeze())
        elif self.body is not None:
            body = self.body.freeze()

        response = _name_variants(
            ([(self.success_status, self.response_model)] if self.response_model is not None else [])
            + self.variants
        )
        if self.explicit:
            confidence = Confidence.HIGH
        elif self.accessed or response:
            confidence = Confidence.LOW
        else:
            confidence = Confidence.NONE
        if confidence is Confidence.NONE:
            return InferenceResult.empty()
        return InferenceResult(params=params, body=body, response=response, confidence=confidence)


def _with_required(schema: FieldSchema) -> FieldSchema:
    return FieldSchema(
        kind=schema.kind,
        fields=schema.fields,
        items=schema.items,
        required=True,
        example=schema.example,
        location=schema.location,
    )


def _strip_required(schema: FieldSchema) -> FieldSchema:
    return FieldSchema(
        kind=schema.kind,
        fields={k: _strip_required(v) for k, v in schema.fields.items()},
        items=schema.items,
        example=schema.example,
    )


def _name_variants(pairs: Sequence[Tuple[int, FieldSchema]]) -> Dict[str, FieldSchema]:
    """Keep distinct shapes as separate variants keyed by status code."""
    out: Dict[str, FieldSchema] = {}
    seen: List[Tuple[int, FieldSchema]] = []
    counts: Dict[int, int] = {}
    for status, schema in pairs:
        if any(s == status and existing == schema for s, existing in seen):
            continue
        seen.append((status, schema))
        counts[status] = counts.get(status, 0) + 1
        name = str(status) if counts[status] == 1 else f"{status}_{counts[status]}"
        out[name] = schema
    return out


class SchemaInferenceEngine:
    """Best-effort static inference over the configured controllers root."""

    def __init__(self, index: ControllerIndex, config: Optional[InferenceConfig] = None, enabled: bool = True):
        self.index = index
        self.config = config or InferenceConfig()
        self.enabled = enabled

    def infer(self, handler: HandlerLike, pattern: Optional[RoutePattern] = None) -> InferenceResult:
        """Infer (params, body, response, confidence) for `handler`. Never raises."""
        if not self.enabled:
            return InferenceResult.empty()
        ref = HandlerRef.from_callable(handler)
        try:
            located = self.index.locate(ref)
            if located is None:
                return InferenceResult.empty()
            tree, node = located
            deadline = time.monotonic() + max(self.config.timeout, 0.0)
            analysis = _HandlerAnalysis(tree, node, self.config, pattern.param_names if pattern else (), deadline)
            return analysis.run()
        except InferenceDeadline:
            logger.warning("inference timed out for %s after %.2fs", ref.label, self.config.timeout)
        except Exception as exc:  # best effort: any analysis error degrades to `none`
            logger.warning("inference failed for %s: %s: %s", ref.label, type(exc).__name__, exc)
        return InferenceResult.empty()


__all__ = ["InferenceConfig", "InferenceResult", "SchemaInferenceEngine", "annotation_schema"]
