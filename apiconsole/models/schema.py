"""Field/schema value objects and the precedence merge used by the registry.

Schemas are treated as immutable once published: every merge builds new
objects, so a registry entry can be swapped atomically.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional

KINDS = ("string", "number", "boolean", "object", "array", "unknown")


class Confidence(str, Enum):
    NONE = "none"
    LOW = "low"
    HIGH = "high"
    EXPLICIT = "explicit"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @classmethod
    def best(cls, *values: "Confidence") -> "Confidence":
        return max(values, key=lambda c: c.rank) if values else cls.NONE


_RANKS = {Confidence.NONE: 0, Confidence.LOW: 1, Confidence.HIGH: 2, Confidence.EXPLICIT: 3}


@dataclass(frozen=True)
class FieldSchema:
    kind: str = "unknown"
    fields: Dict[str, "FieldSchema"] = field(default_factory=dict)
    items: Optional["FieldSchema"] = None
    required: bool = False
    example: Any = None
    location: Optional[str] = None

    def __post_init__(self):
        if self.kind not in KINDS:
            raise ValueError(f"unknown field kind: {self.kind!r}")

    @classmethod
    def object(cls, fields: Optional[Mapping[str, "FieldSchema"]] = None, **kw: Any) -> "FieldSchema":
        return cls(kind="object", fields=dict(fields or {}), **kw)

    @property
    def is_empty(self) -> bool:
        return self.kind in ("unknown", "object") and not self.fields and self.items is None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind, "required": self.required}
        if self.kind == "object" or self.fields:
            out["fields"] = {k: v.to_dict() for k, v in self.fields.items()}
        if self.items is not None:
            out["items"] = self.items.to_dict()
        if self.example is not None:
            out["example"] = self.example
        if self.location:
            out["location"] = self.location
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "FieldSchema":
        """Build from `to_dict()` output or a shorthand.

        Shorthands: a bare kind string (``"string"``, ``"string!"`` for
        required) or a mapping of field name -> shorthand, which becomes an
        object schema.
        """
        if isinstance(data, FieldSchema):
            return data
        if isinstance(data, str):
            required = data.endswith("!")
            return cls(kind=data.rstrip("!"), required=required)
        if not isinstance(data, Mapping):
            raise TypeError(f"cannot build FieldSchema from {type(data).__name__}")
        if "kind" not in data:
            return cls.object({str(k): cls.from_dict(v) for k, v in data.items()})
        items = data.get("items")
        return cls(
            kind=data["kind"],
            fields={str(k): cls.from_dict(v) for k, v in (data.get("fields") or {}).items()},
            items=cls.from_dict(items) if items is not None else None,
            required=bool(data.get("required", False)),
            example=data.get("example"),
            location=data.get("location"),
        )


def merge_fields(primary: Optional[FieldSchema], secondary: Optional[FieldSchema]) -> Optional[FieldSchema]:
    """Field-by-field merge: values from `primary` win, `secondary` fills gaps."""
    if primary is None:
        return secondary
    if secondary is None:
        return primary
    kind = primary.kind if primary.kind != "unknown" else secondary.kind
    if primary.kind != "unknown" and secondary.kind not in ("unknown", primary.kind):
        # incompatible shapes: keep primary untouched
        return primary
    fields = dict(primary.fields)
    for name, sec in secondary.fields.items():
        fields[name] = merge_fields(fields.get(name), sec)  # type: ignore[assignment]
    return replace(
        primary,
        kind=kind,
        fields=fields,
        items=merge_fields(primary.items, secondary.items),
        example=primary.example if primary.example is not None else secondary.example,
        location=primary.location or secondary.location,
    )


def merge_variants(
    primary: Optional[Mapping[str, FieldSchema]], secondary: Optional[Mapping[str, FieldSchema]]
) -> Dict[str, FieldSchema]:
    out: Dict[str, FieldSchema] = dict(secondary or {})
    for name, schema in (primary or {}).items():
        out[name] = merge_fields(schema, out.get(name))  # type: ignore[assignment]
    return out


@dataclass(frozen=True)
class SchemaSet:
    params: Optional[FieldSchema] = None
    body: Optional[FieldSchema] = None
    response: Dict[str, FieldSchema] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return (
            (self.params is None or self.params.is_empty)
            and (self.body is None or self.body.is_empty)
            and not self.response
        )

    def merged_over(self, other: Optional["SchemaSet"]) -> "SchemaSet":
        """Return self merged over `other` (self wins field-by-field)."""
        if other is None:
            return self
        return SchemaSet(
            params=merge_fields(self.params, other.params),
            body=merge_fields(self.body, other.body),
            response=merge_variants(self.response, other.response),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "params": self.params.to_dict() if self.params else None,
            "body": self.body.to_dict() if self.body else None,
            "response": {k: v.to_dict() for k, v in self.response.items()},
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["SchemaSet"]:
        if not data:
            return None
        params = data.get("params")
        body = data.get("body")
        return cls(
            params=FieldSchema.from_dict(params) if params is not None else None,
            body=FieldSchema.from_dict(body) if body is not None else None,
            response={str(k): FieldSchema.from_dict(v) for k, v in (data.get("response") or {}).items()},
        )


__all__ = ["KINDS", "Confidence", "FieldSchema", "SchemaSet", "merge_fields", "merge_variants"]
