# Ensure project root is on sys.path for imports of main and the console packages
import sys, os
from fastapi.testclient import TestClient

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest  # noqa: E402 (after sys.path manipulation)
import importlib  # noqa: E402
import main as main_module  # noqa: E402
from apiconsole.core.config import Settings  # noqa: E402


def make_settings(tmp_path, **overrides):
    """Settings isolated from any local .env file and environment overrides."""
    values = dict(
        enable_auth=True,
        console_api_key=None,
        log_level="WARNING",
        snapshot_path=str(tmp_path / "catalog_snapshot.json"),
        invocation_timeout=5.0,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture()
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture()
def client(settings):
    """Return a fresh TestClient (new FastAPI app + console) per test.

    Each app gets its own ConsoleService, so catalog and session state never
    leak between tests.
    """
    importlib.reload(main_module)
    app = main_module.get_application(settings)
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def console(client):
    return client.app.state.console


@pytest.fixture()
def session_token(client):
    resp = client.post("/__console/sessions", json={"principal": "tester"})
    assert resp.status_code == 201
    return resp.json()["token"]
