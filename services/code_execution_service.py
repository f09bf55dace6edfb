"""
Code Execution Service
======================
לקוח לשירות הרצת קוד חיצוני (Piston). השירות עצמו מריץ את הקוד; כאן רק
בונים את הבקשה ומפענחים את התשובה לאחת מארבע תוצאות מוגדרות.

קונפיגורציה דרך ENV:
    EXECUTION_API_URL=https://emkc.org/api/v2/piston/execute
    AIOHTTP_TIMEOUT_TOTAL=10         # timeout כולל לסשן ה-HTTP
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import http_async
from config import config
from services.languages import Runtime, get_runtime

logger = logging.getLogger(__name__)


class MalformedResponseError(ValueError):
    """תשובת שירות ההרצה אינה בצורה המוכרת."""


@dataclass(frozen=True)
class StageResult:
    """שלב compile או run בתשובת השירות."""

    code: Optional[int]
    stdout: str = ""
    stderr: str = ""
    output: str = ""
    signal: Optional[str] = None

    @property
    def failed(self) -> bool:
        # exit code חסר (למשל תהליך שנהרג ב-signal) נחשב כשלון
        return self.code != 0

    def error_text(self) -> str:
        text = self.stderr or self.stdout or self.output
        if text:
            return text
        if self.signal:
            return f"Process terminated by {self.signal}"
        if self.code is None:
            return "Process exited without a status code"
        return f"Exited with code {self.code}"

    @classmethod
    def from_dict(cls, name: str, raw: Any) -> "StageResult":
        if not isinstance(raw, dict):
            raise MalformedResponseError(f"'{name}' section must be an object, got {type(raw).__name__}")
        code = raw.get("code")
        if code is not None and (isinstance(code, bool) or not isinstance(code, int)):
            raise MalformedResponseError(f"'{name}.code' must be an integer or null")
        fields: Dict[str, str] = {}
        for key in ("stdout", "stderr", "output"):
            value = raw.get(key)
            if value is None:
                fields[key] = ""
            elif isinstance(value, str):
                fields[key] = value
            else:
                raise MalformedResponseError(f"'{name}.{key}' must be a string")
        signal = raw.get("signal")
        return cls(code=code, signal=(str(signal) if signal else None), **fields)


@dataclass(frozen=True)
class ApiError:
    message: str

    @property
    def error(self) -> str:
        return self.message


@dataclass(frozen=True)
class CompileError:
    stage: StageResult

    @property
    def error(self) -> str:
        return self.stage.error_text()


@dataclass(frozen=True)
class RunError:
    stage: StageResult

    @property
    def error(self) -> str:
        return self.stage.error_text()


@dataclass(frozen=True)
class RunSuccess:
    stage: StageResult

    @property
    def output(self) -> str:
        return (self.stage.output or self.stage.stdout).strip()


ExecutionOutcome = Union[ApiError, CompileError, RunError, RunSuccess]


def build_execution_payload(runtime: Runtime, code: str) -> Dict[str, Any]:
    return {
        "language": runtime.language,
        "version": runtime.version,
        "files": [{"content": code}],
    }


def decode_execution_response(data: Any) -> ExecutionOutcome:
    """
    מפענח את גוף התשובה לפי סדר עדיפויות:
    שגיאת API (message) → שגיאת קומפילציה → שגיאת ריצה → הצלחה.

    Raises:
        MalformedResponseError: גוף שאינו אובייקט, שלב שאינו אובייקט,
            או תשובה ללא message וללא שלב run.
    """
    if not isinstance(data, dict):
        raise MalformedResponseError(f"expected a JSON object, got {type(data).__name__}")

    message = data.get("message")
    if message:
        return ApiError(str(message))

    compile_stage = StageResult.from_dict("compile", data["compile"]) if data.get("compile") is not None else None
    if compile_stage is not None and compile_stage.failed:
        return CompileError(compile_stage)

    if data.get("run") is None:
        raise MalformedResponseError("response has neither 'message' nor 'run'")
    run_stage = StageResult.from_dict("run", data["run"])
    if run_stage.failed:
        return RunError(run_stage)
    return RunSuccess(run_stage)


class CodeExecutionService:
    """
    לקוח לשירות ההרצה. בקשה אחת לכל הרצה, ללא retries.

    סטטוס HTTP לא נבדק: השירות מחזיר שגיאות עם message גם ב-4xx,
    ולכן הגוף מפוענח תמיד.
    """

    SERVICE_LABEL = "piston"

    def __init__(self, api_url: Optional[str] = None, *, session: Any = None) -> None:
        self._api_url = api_url or config.EXECUTION_API_URL
        self._session = session

    @property
    def api_url(self) -> str:
        return self._api_url

    @property
    def runtimes_url(self) -> str:
        base = self._api_url.rstrip("/")
        if base.endswith("/execute"):
            base = base[: -len("/execute")]
        return f"{base}/runtimes"

    async def execute(self, language: str, code: str) -> ExecutionOutcome:
        runtime = get_runtime(language)
        payload = build_execution_payload(runtime, code)
        async with http_async.request(
            "POST",
            self._api_url,
            json=payload,
            session=self._session,
            service=self.SERVICE_LABEL,
        ) as response:
            data = await response.json(content_type=None)
        outcome = decode_execution_response(data)
        # ללא קוד/פלט בלוג
        logger.info(
            "execution finished: language=%s version=%s outcome=%s",
            runtime.language,
            runtime.version,
            type(outcome).__name__,
        )
        return outcome

    async def list_runtimes(self) -> List[Dict[str, Any]]:
        async with http_async.request(
            "GET",
            self.runtimes_url,
            session=self._session,
            service=self.SERVICE_LABEL,
        ) as response:
            data = await response.json(content_type=None)
        if not isinstance(data, list):
            raise MalformedResponseError("runtimes response must be a JSON array")
        return [item for item in data if isinstance(item, dict)]
