import json

import pytest

from apiconsole.core.registry import RouteRegistry
from apiconsole.core.snapshot import FORMAT_VERSION, dump_entries, load_entries, read_snapshot, write_snapshot


def handler(request):
    return None


def _registry():
    reg = RouteRegistry()
    reg.register("POST", "/login", "/api", handler=handler, declared={"body": {"username": "string!"}})
    reg.register("GET", "/files/{rest:path}", handler=handler, requires_auth=True, tags=("files",))
    reg.register("GET", "/users/<int:user_id>", handler=handler)
    return reg


def test_round_trip_preserves_entries_and_order(tmp_path):
    reg = _registry()
    target = tmp_path / "nested" / "snap.json"
    meta = write_snapshot(target, reg.snapshot())
    assert meta["saved"] is True and meta["total"] == 3
    assert not target.with_suffix(".json.part").exists()

    restored = read_snapshot(target)
    assert restored == reg.list()

    fresh = RouteRegistry()
    assert fresh.restore(restored) == 3
    assert [e.key for e in fresh.list()] == [e.key for e in reg.list()]
    # sequence numbering continues after the restored entries
    assert fresh.register("GET", "/new", handler=handler).seq == 4


def test_restored_entries_resolve(tmp_path):
    target = tmp_path / "snap.json"
    write_snapshot(target, _registry().list())
    fresh = RouteRegistry()
    fresh.restore(read_snapshot(target))
    found = fresh.resolve("GET", "/users/7")
    assert found.bindings == {"user_id": "7"}
    assert fresh.resolve("GET", "/users/seven") is None


def test_unknown_version_is_rejected():
    payload = dump_entries(_registry().list())
    payload["version"] = FORMAT_VERSION + 1
    with pytest.raises(ValueError):
        load_entries(payload)


def test_snapshot_file_is_plain_json(tmp_path):
    target = tmp_path / "snap.json"
    write_snapshot(target, _registry().list())
    data = json.loads(target.read_text(encoding="utf-8"))
    assert data["version"] == FORMAT_VERSION
    first = data["routes"][0]
    assert first["method"] == "POST"
    assert first["pattern"] == "/api/login"
    assert first["mountPrefix"] == "/api"
    assert first["declared"]["body"]["fields"]["username"]["required"] is True


def test_console_snapshot_endpoints(client, console, session_token):
    headers = {"X-Console-Session": session_token}
    assert client.post("/__console/snapshot").status_code == 401
    saved = client.post("/__console/snapshot", headers=headers)
    assert saved.status_code == 200
    before = client.get("/__console/routes").json()

    console.registry.reset()
    assert client.get("/__console/routes").json()["total"] == 0

    restored = client.post("/__console/snapshot/restore", headers=headers)
    assert restored.json() == {"restored": before["total"]}
    assert client.get("/__console/routes").json() == before


def test_restore_without_snapshot_is_404(client, session_token):
    resp = client.post("/__console/snapshot/restore", headers={"X-Console-Session": session_token})
    assert resp.status_code == 404
