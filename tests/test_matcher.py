import pytest

from apiconsole.core import matcher
from apiconsole.models.route import Literal, Param, Wildcard


@pytest.mark.parametrize("raw", ["/users/{id}", "/users/:id", "/users/<id>", "users/{user_id}/"])
def test_param_syntaxes_share_one_key(raw):
    rp = matcher.normalize(raw, "get")
    assert rp.key == ("GET", "/users/{}")
    assert isinstance(rp.segments[1], Param)


@pytest.mark.parametrize("raw", ["/files/{rest:path}", "/files/*", "/files/*rest", "/files/<path:rest>", "/files/{*rest}", "/files/**"])
def test_wildcard_syntaxes(raw):
    rp = matcher.normalize(raw, "GET")
    assert rp.shape == "/files/*"
    assert rp.has_wildcard


def test_typed_params_render_with_converter():
    rp = matcher.normalize("/items/<int:item_id>", "GET")
    assert rp.segments == (Literal("items"), Param("item_id", "int"))
    assert rp.path == "/items/{item_id:int}"


def test_wildcard_must_be_last():
    with pytest.raises(ValueError):
        matcher.normalize("/files/*/meta", "GET")


def test_join_collapses_slashes():
    assert matcher.join("/api/", "/login") == "/api/login"
    assert matcher.join(None, "users") == "/users"
    assert matcher.join("", "") == "/"


def test_match_binds_params():
    rp = matcher.normalize("/users/:id", "GET")
    assert matcher.match(rp, "/users/42") == {"id": "42"}
    assert matcher.match(rp, "/users/42/extra") is None
    assert matcher.match(rp, "/users") is None


def test_match_ignores_query_and_unquotes():
    rp = matcher.normalize("/users/{name}", "GET")
    assert matcher.match(rp, "/users/j%20doe?verbose=1") == {"name": "j doe"}


def test_int_converter_rejects_non_numeric():
    rp = matcher.normalize("/items/{item_id:int}", "GET")
    assert matcher.match(rp, "/items/7") == {"item_id": "7"}
    assert matcher.match(rp, "/items/seven") is None


def test_wildcard_binds_remaining_segments():
    rp = matcher.normalize("/files/{rest:path}", "GET")
    assert matcher.match(rp, "/files/docs/guide.md") == {"rest": "docs/guide.md"}
    assert matcher.match(rp, "/files") == {"rest": ""}
    assert matcher.match(rp, "/other/x") is None


def test_duplicate_conflict_ignores_param_names():
    a = matcher.normalize("/users/{id}", "GET")
    b = matcher.normalize("/users/:user_id", "GET")
    conflict = matcher.detect_conflict(a, b)
    assert conflict is not None and conflict.kind == "duplicate"


def test_shadow_detected_in_both_orders():
    wildcard = matcher.normalize("/files/*", "GET")
    named = matcher.normalize("/files/:name", "GET")
    for existing, candidate in ((wildcard, named), (named, wildcard)):
        conflict = matcher.detect_conflict(existing, candidate)
        assert conflict is not None
        assert conflict.kind == "shadow"
        assert conflict.general == ("GET", "/files/*")
        assert conflict.specific == ("GET", "/files/{}")


def test_typed_param_keeps_its_own_key_and_is_shadowed():
    typed = matcher.normalize("/items/{item_id:int}", "GET")
    untyped = matcher.normalize("/items/{slug}", "GET")
    assert typed.key == ("GET", "/items/{int}")
    assert matcher.normalize("/items/<int:n>", "GET").key == typed.key
    for existing, candidate in ((typed, untyped), (untyped, typed)):
        conflict = matcher.detect_conflict(existing, candidate)
        assert conflict.kind == "shadow"
        assert conflict.general == ("GET", "/items/{}")
        assert conflict.specific == ("GET", "/items/{int}")


def test_no_conflict_across_methods_or_disjoint_paths():
    wildcard = matcher.normalize("/files/*", "GET")
    assert matcher.detect_conflict(wildcard, matcher.normalize("/files/:name", "POST")) is None
    assert matcher.detect_conflict(wildcard, matcher.normalize("/users/:id", "GET")) is None


def test_specificity_prefers_literals_over_params_over_wildcards():
    literal = matcher.normalize("/files/readme", "GET")
    param = matcher.normalize("/files/{name}", "GET")
    typed = matcher.normalize("/files/{name:int}", "GET")
    wildcard = matcher.normalize("/files/{rest:path}", "GET")
    ranked = sorted([wildcard, param, literal, typed], key=matcher.specificity, reverse=True)
    assert ranked == [literal, typed, param, wildcard]


def test_wildcard_segment_is_recognised():
    rp = matcher.normalize("/static/*", "GET")
    assert isinstance(rp.segments[-1], Wildcard)
