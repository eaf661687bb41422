import logging

from apiconsole.core.config import Settings
from apiconsole.core.logging import configure_logging, get_logger, mask_token


def test_env_prefix_overrides(monkeypatch):
    monkeypatch.setenv("APICONSOLE_SESSION_TTL", "60")
    monkeypatch.setenv("APICONSOLE_ENABLE_AUTH", "false")
    monkeypatch.setenv("APICONSOLE_BODY_ACCESSORS", '["json", "get_json"]')
    s = Settings(_env_file=None)
    assert s.session_ttl == 60.0
    assert s.enable_auth is False
    assert s.body_accessors == ["json", "get_json"]
    assert s.console_prefix == "/__console"


def test_configure_logging_is_idempotent():
    configure_logging("DEBUG")
    configure_logging("WARNING")
    root = logging.getLogger("apiconsole")
    marked = [h for h in root.handlers if getattr(h, "_apiconsole", False)]
    assert len(marked) == 1
    assert root.level == logging.WARNING
    assert get_logger("registry").name == "apiconsole.registry"


def test_mask_token_never_reveals_full_value():
    token = "abcdefghijklmnopqrstuvwxyz"
    assert mask_token(token) == "abcd…"
    assert mask_token(None) == "-"
    assert mask_token("short") == "…"
