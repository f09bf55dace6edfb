import pytest
from pydantic import ValidationError

from config import EditorConfig


def test_defaults(monkeypatch):
    for key in ("EXECUTION_API_URL", "RUN_CONCURRENCY_POLICY", "DEFAULT_LANGUAGE", "DEFAULT_THEME", "DEFAULT_FONT_SIZE"):
        monkeypatch.delenv(key, raising=False)
    cfg = EditorConfig(_env_file=None)
    assert cfg.EXECUTION_API_URL == "https://emkc.org/api/v2/piston/execute"
    assert cfg.RUN_CONCURRENCY_POLICY == "supersede"
    assert cfg.DEFAULT_LANGUAGE == "javascript"
    assert cfg.DEFAULT_THEME == "vs-dark"
    assert cfg.DEFAULT_FONT_SIZE == 14
    assert cfg.MONGODB_URL is None


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("RUN_CONCURRENCY_POLICY", "Reject")
    monkeypatch.setenv("DEFAULT_FONT_SIZE", "16")
    cfg = EditorConfig()
    assert cfg.RUN_CONCURRENCY_POLICY == "reject"
    assert cfg.DEFAULT_FONT_SIZE == 16


def test_invalid_policy_rejected():
    with pytest.raises(ValidationError):
        EditorConfig(RUN_CONCURRENCY_POLICY="queue")


def test_invalid_urls_rejected():
    with pytest.raises(ValidationError):
        EditorConfig(EXECUTION_API_URL="ftp://piston")
    with pytest.raises(ValidationError):
        EditorConfig(MONGODB_URL="postgres://db")


def test_empty_mongodb_url_means_disabled():
    assert EditorConfig(MONGODB_URL="").MONGODB_URL is None
