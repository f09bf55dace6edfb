import structlog

import observability as obs


def test_redact_sensitive_keys():
    out = obs._redact_sensitive(None, "info", {"event": "x", "api_token": "t", "Authorization": "Bearer y", "language": "go"})
    assert out["api_token"] == "[REDACTED]"
    assert out["Authorization"] == "[REDACTED]"
    assert out["language"] == "go"


def test_emit_event_error_goes_to_recent_buffer():
    obs.setup_structlog_logging("INFO")
    obs.emit_event("code_run_failed", severity="error", error="boom", operation="run")
    recent = obs.get_recent_errors(1)
    assert recent[-1]["event"] == "code_run_failed"
    assert recent[-1]["error"] == "boom"
    assert recent[-1]["operation"] == "run"


def test_get_recent_errors_non_positive_limit():
    assert obs.get_recent_errors(0) == []


def test_prepare_outgoing_headers_keeps_explicit_request_id():
    obs.bind_request_id("rid-1")
    try:
        headers = obs.prepare_outgoing_headers({"x-request-id": "mine", "Skip": None})
        assert headers == {"x-request-id": "mine"}
        assert obs.prepare_outgoing_headers(None) == {"X-Request-ID": "rid-1"}
    finally:
        structlog.contextvars.clear_contextvars()


def test_bind_user_context_hashes_id():
    try:
        obs.bind_user_context(user_id="user_123")
        ctx = obs.get_observability_context()
        assert ctx["user_id"] != "user_123"
        assert len(ctx["user_id"]) == 16
    finally:
        structlog.contextvars.clear_contextvars()


def test_init_sentry_without_dsn_is_noop(monkeypatch):
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    obs.init_sentry()
    assert obs._SENTRY_INIT_DONE is False
