from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Any, Optional

import aiohttp

from observability import emit_event, prepare_outgoing_headers

logger = logging.getLogger(__name__)

_session: Optional[aiohttp.ClientSession] = None


def _int_env(name: str, default: int) -> int:
    env_val = os.getenv(name)
    if env_val not in (None, ""):
        try:
            return int(env_val)
        except ValueError:
            return default
    from config import config

    return int(getattr(config, name, default))


def _build_session_kwargs() -> dict[str, Any]:
    total = _int_env("AIOHTTP_TIMEOUT_TOTAL", 10)
    limit = _int_env("AIOHTTP_POOL_LIMIT", 50)
    limit_per_host = _int_env("AIOHTTP_LIMIT_PER_HOST", 0)
    return {
        "timeout": aiohttp.ClientTimeout(total=total),
        "connector": aiohttp.TCPConnector(
            limit=limit,
            limit_per_host=(None if limit_per_host <= 0 else limit_per_host),
            use_dns_cache=True,
            ttl_dns_cache=300,
        ),
    }


def get_session() -> aiohttp.ClientSession:
    global _session
    try:
        current_loop = asyncio.get_running_loop()
    except RuntimeError:
        current_loop = None
    if _session is not None and not getattr(_session, "closed", False):
        # סשן ששייך ללולאה אחרת לא שמיש בלולאה הנוכחית
        session_loop = getattr(_session, "_loop", None)
        if session_loop is not None and current_loop is not None and session_loop is not current_loop:
            _session = None
    if _session is None or getattr(_session, "closed", False):
        _session = aiohttp.ClientSession(**_build_session_kwargs())
    return _session


class _RequestContext:
    """Single-attempt request: no retries, duration logged, failures emitted."""

    def __init__(
        self,
        method: str,
        url: str,
        *,
        session: Optional[aiohttp.ClientSession],
        service: str,
        **kwargs: Any,
    ) -> None:
        self.method = str(method).upper()
        self.url = str(url)
        self.service = service
        self._session = session
        self._request_kwargs = dict(kwargs)
        self._response: Any = None

    async def __aenter__(self):
        session = self._session or get_session()
        self._request_kwargs["headers"] = prepare_outgoing_headers(self._request_kwargs.get("headers"))
        start = time.perf_counter()
        try:
            self._response = await session.request(self.method, self.url, **self._request_kwargs)
        except Exception as exc:
            emit_event(
                "external_request_failure",
                severity="error",
                service=self.service,
                method=self.method,
                error_signature=type(exc).__name__,
                ms=round((time.perf_counter() - start) * 1000.0, 1),
            )
            raise
        logger.debug(
            "http_async %s %s -> %s (%.1fms)",
            self.method,
            self.url,
            getattr(self._response, "status", "?"),
            (time.perf_counter() - start) * 1000.0,
        )
        return self._response

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if self._response is not None:
            await self._response.release()
        return False


def request(method: str, url: str, **kwargs: Any) -> _RequestContext:
    session = kwargs.pop("session", None)
    service = kwargs.pop("service", None) or "external"
    return _RequestContext(method, url, session=session, service=service, **kwargs)


async def close_session() -> None:
    global _session
    try:
        if _session is not None and not getattr(_session, "closed", False):
            await _session.close()
    finally:
        _session = None
