import pytest

from apiconsole.core.errors import CredentialsRejected, SessionInvalid
from apiconsole.core.sessions import EXPIRED, REVOKED, UNKNOWN, SessionManager


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now


def _reason(manager, token):
    with pytest.raises(SessionInvalid) as excinfo:
        manager.validate(token)
    return excinfo.value.reason


def test_issue_then_validate_is_valid():
    clock = FakeClock()
    mgr = SessionManager(ttl=60, clock=clock)
    session = mgr.issue({"principal": "alice"})
    assert session.expires_at == 1060.0
    assert mgr.validate(session.token) == session
    assert len(session.token) >= 32


def test_revoke_is_immediate_and_idempotent():
    mgr = SessionManager(ttl=60, clock=FakeClock())
    token = mgr.issue().token
    assert mgr.revoke(token) is True
    assert mgr.revoke(token) is True
    assert _reason(mgr, token) == REVOKED


def test_expiry_without_revocation():
    clock = FakeClock()
    mgr = SessionManager(ttl=60, clock=clock)
    token = mgr.issue().token
    clock.now = 1059.0
    mgr.validate(token)
    clock.now = 1060.0
    assert _reason(mgr, token) == EXPIRED


def test_unknown_and_missing_tokens():
    mgr = SessionManager(clock=FakeClock())
    assert _reason(mgr, "nope") == UNKNOWN
    assert _reason(mgr, None) == UNKNOWN
    assert mgr.revoke("nope") is False


def test_revoked_reason_wins_over_expired():
    clock = FakeClock()
    mgr = SessionManager(ttl=10, clock=clock)
    token = mgr.issue().token
    mgr.revoke(token)
    clock.now += 20
    assert _reason(mgr, token) == REVOKED


def test_tokens_are_unique():
    mgr = SessionManager(clock=FakeClock())
    tokens = {mgr.issue().token for _ in range(200)}
    assert len(tokens) == 200


def test_sweep_drops_only_sessions_past_grace():
    clock = FakeClock()
    mgr = SessionManager(ttl=10, sweep_grace=100, clock=clock)
    old = mgr.issue().token
    clock.now += 50
    recent = mgr.issue().token
    clock.now += 65  # old expired 105s ago, recent 5s ago
    assert mgr.sweep_expired() == 1
    assert _reason(mgr, old) == UNKNOWN
    assert _reason(mgr, recent) == EXPIRED
    assert mgr.active_count() == 0


def test_authenticate_with_api_key():
    mgr = SessionManager(clock=FakeClock(), api_key="s3cret")
    with pytest.raises(CredentialsRejected):
        mgr.authenticate({"principal": "alice", "api_key": "wrong"})
    with pytest.raises(CredentialsRejected):
        mgr.authenticate({"principal": "alice"})
    session = mgr.authenticate({"principal": "alice", "api_key": "s3cret", "team": "qa"})
    assert session.claims == {"principal": "alice", "team": "qa"}


def test_authenticate_without_api_key_accepts_any_principal():
    mgr = SessionManager(clock=FakeClock())
    session = mgr.authenticate({"principal": "dev", "api_key": None})
    assert mgr.validate(session.token).claims == {"principal": "dev"}


def test_ttl_must_be_positive():
    with pytest.raises(ValueError):
        SessionManager(ttl=0)
