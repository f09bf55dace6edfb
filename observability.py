"""
Structured logging, request IDs, and optional Sentry initialization.

- structlog configuration with JSON/console rendering
- request_id binding via contextvars
- sensitive data redaction
- Sentry init (if SENTRY_DSN provided)
"""
from __future__ import annotations

import hashlib
import logging
import os
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Dict, Mapping

import structlog

SCHEMA_VERSION = "1.0"

LOGGER = logging.getLogger(__name__)

# Guard to avoid double Sentry initialization in multi-import scenarios
_SENTRY_INIT_DONE = False
_SENTRY_DSN_USED: str | None = None

_SENSITIVE_KEYS = {"token", "password", "secret", "authorization", "cookie", "set-cookie"}


def _redact_sensitive(logger, method, event_dict: Dict[str, Any]):
    for key in list(event_dict.keys()):
        if any(s in str(key).lower() for s in _SENSITIVE_KEYS):
            event_dict[key] = "[REDACTED]"
    return event_dict


def _add_schema_version(logger, method, event_dict: Dict[str, Any]):
    event_dict.setdefault("schema_version", SCHEMA_VERSION)
    return event_dict


def _choose_renderer():
    debug = str(os.getenv("DEBUG", "")).lower() in {"1", "true", "yes"}
    fmt = (os.getenv("LOG_FORMAT") or "").lower().strip()
    if debug or fmt == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def _set_sentry_tag(name: str, value: str) -> None:
    if not value:
        return
    try:
        import sentry_sdk  # type: ignore

        sentry_sdk.set_tag(str(name), str(value))
    except Exception:
        return


def _hash_identifier(raw: Any) -> str:
    if raw is None:
        return ""
    text = str(raw).strip()
    if not text:
        return ""
    return hashlib.sha256(text.encode("utf-8", "ignore")).hexdigest()[:16]


def setup_structlog_logging(min_level: str | int = "INFO") -> None:
    level = logging.getLevelName(min_level) if isinstance(min_level, str) else int(min_level)
    if not isinstance(level, int):
        level = logging.INFO

    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, handlers=[logging.StreamHandler()])
    else:
        logging.getLogger().setLevel(level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _redact_sensitive,
            _add_schema_version,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _choose_renderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_observability_context() -> Dict[str, str]:
    ctx = structlog.contextvars.get_contextvars()
    result: Dict[str, str] = {}
    for key in ("request_id", "user_id", "language"):
        val = ctx.get(key)
        if val:
            result[key] = str(val)
    return result


def get_request_id(default: str = "") -> str:
    return str(get_observability_context().get("request_id", "") or default)


def generate_request_id() -> str:
    return str(uuid.uuid4())[:8]


def bind_request_id(request_id: str) -> None:
    structlog.contextvars.bind_contextvars(request_id=request_id)
    _set_sentry_tag("request_id", request_id)


def bind_user_context(*, user_id: Any | None = None) -> None:
    user_hash = _hash_identifier(user_id)
    if not user_hash:
        return
    structlog.contextvars.bind_contextvars(user_id=user_hash)
    _set_sentry_tag("user_id", user_hash)


def prepare_outgoing_headers(headers: Mapping[str, Any] | None = None) -> Dict[str, str]:
    prepared: Dict[str, str] = {}
    existing_lower: set[str] = set()
    for key, value in (headers or {}).items():
        if key is None or value is None:
            continue
        prepared[str(key)] = str(value)
        existing_lower.add(str(key).lower())

    rid = get_request_id("")
    if rid and "x-request-id" not in existing_lower:
        prepared["X-Request-ID"] = rid
    return prepared


# --- Simple in-memory errors buffer ---
_RECENT_ERRORS: "deque[Dict[str, Any]]" = deque(maxlen=int(os.getenv("RECENT_ERRORS_BUFFER", "200")))


def emit_event(event: str, severity: str = "info", **fields: Any) -> None:
    logger = structlog.get_logger()
    fields.setdefault("event", event)

    if severity in {"error", "critical"}:
        rid = get_request_id("")
        if rid and "request_id" not in fields:
            fields["request_id"] = rid
        _RECENT_ERRORS.append({
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": str(event),
            "error": str(fields.get("error") or fields.get("message") or ""),
            "operation": str(fields.get("operation") or ""),
        })
        logger.error(**fields)
    elif severity in {"warn", "warning"}:
        logger.warning(**fields)
    else:
        logger.info(**fields)


def get_recent_errors(limit: int = 10) -> list[Dict[str, Any]]:
    """Return the most recent error events recorded via emit_event."""
    if limit <= 0:
        return []
    return list(_RECENT_ERRORS)[-limit:]


def init_sentry() -> None:
    global _SENTRY_INIT_DONE, _SENTRY_DSN_USED
    dsn = os.getenv("SENTRY_DSN")
    env_val = os.getenv("ENVIRONMENT")
    if not dsn or not env_val:
        from config import config as _cfg

        dsn = dsn or _cfg.SENTRY_DSN
        env_val = env_val or _cfg.ENVIRONMENT
    if not dsn:
        LOGGER.info("sentry init skipped: missing DSN")
        return
    if _SENTRY_INIT_DONE and _SENTRY_DSN_USED == dsn:
        return

    import sentry_sdk
    from sentry_sdk.integrations.logging import LoggingIntegration

    def _before_send(event, hint):
        extra = event.get("extra", {})
        for k in list(extra.keys()):
            if any(s in k.lower() for s in _SENSITIVE_KEYS):
                extra[k] = "[REDACTED]"
        event["extra"] = extra
        return event

    sentry_sdk.init(
        dsn=dsn,
        environment=str(env_val or "production"),
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1")),
        integrations=[LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)],
        before_send=_before_send,
    )
    _SENTRY_INIT_DONE = True
    _SENTRY_DSN_USED = dsn
