"""
Editor Store
============
מחזיק את העדפות העורך (שפה, גודל גופן, ערכת נושא) ואת מצב ההרצה האחרונה,
ומתזמר קריאה אחת לשירות ההרצה לכל run().

ה-store הוא אובייקט מפורש שנבנה ע"י שורש האפליקציה ומועבר למי שצריך אותו;
האחסון, הלקוח ולוג ההרצות מוזרקים.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

from config import EditorConfig, config as default_config
from observability import emit_event
from services.code_execution_service import (
    CodeExecutionService,
    ExecutionOutcome,
    RunSuccess,
)
from services.languages import is_known_theme
from services.preferences_storage import (
    FONT_SIZE_KEY,
    LANGUAGE_KEY,
    THEME_KEY,
    KeyValueStorage,
    draft_key,
)

logger = logging.getLogger(__name__)

EMPTY_CODE_ERROR = "Enter some code to run"
GENERIC_RUN_ERROR = "Error running code"


class RunInProgressError(RuntimeError):
    """run() נקרא בזמן שהרצה קודמת עדיין ממתינה (מדיניות reject)."""


@dataclass(frozen=True)
class ExecutionResult:
    code: str
    output: str
    error: Optional[str] = None


@dataclass(frozen=True)
class EditorState:
    language: str
    font_size: int
    theme: str
    output: str = ""
    error: Optional[str] = None
    is_running: bool = False
    execution_result: Optional[ExecutionResult] = None


class EditorHandle(Protocol):
    def get_value(self) -> str: ...
    def set_value(self, value: str) -> None: ...


class ExecutionClient(Protocol):
    async def execute(self, language: str, code: str) -> ExecutionOutcome: ...


class ExecutionLog(Protocol):
    def record(self, language: str, result: ExecutionResult) -> Any: ...


class TextBuffer:
    """משטח עריכה פשוט בזיכרון (CLI וטסטים)."""

    def __init__(self, value: str = "") -> None:
        self._value = value

    def get_value(self) -> str:
        return self._value

    def set_value(self, value: str) -> None:
        self._value = value


Listener = Callable[[EditorState], Any]


def initial_preferences(storage: Optional[KeyValueStorage], settings: EditorConfig) -> Dict[str, Any]:
    """ערכי פתיחה: ברירות מחדל כשאין אחסון, אחרת מה שנשמר (עם fallback)."""
    prefs: Dict[str, Any] = {
        "language": settings.DEFAULT_LANGUAGE,
        "font_size": settings.DEFAULT_FONT_SIZE,
        "theme": settings.DEFAULT_THEME,
    }
    if storage is None:
        return prefs

    prefs["language"] = storage.get(LANGUAGE_KEY) or settings.DEFAULT_LANGUAGE
    prefs["theme"] = storage.get(THEME_KEY) or settings.DEFAULT_THEME
    raw_size = storage.get(FONT_SIZE_KEY)
    if raw_size:
        try:
            prefs["font_size"] = int(raw_size)
        except ValueError:
            logger.warning("ignoring stored font size %r; using default", raw_size)
    return prefs


class EditorStore:
    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        client: Optional[ExecutionClient] = None,
        *,
        execution_log: Optional[ExecutionLog] = None,
        settings: Optional[EditorConfig] = None,
    ) -> None:
        self._settings = settings or default_config
        self._storage = storage
        self._client = client or CodeExecutionService(self._settings.EXECUTION_API_URL)
        self._execution_log = execution_log
        self._run_policy = self._settings.RUN_CONCURRENCY_POLICY
        self._editor: Optional[EditorHandle] = None
        self._listeners: List[Listener] = []
        self._generation = 0
        self._pending: Optional[asyncio.Future] = None
        self._state = EditorState(**initial_preferences(storage, self._settings))

    # -------------------- State --------------------

    @property
    def state(self) -> EditorState:
        return self._state

    @property
    def editor(self) -> Optional[EditorHandle]:
        return self._editor

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set(self, **changes: Any) -> None:
        self._state = dataclasses.replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("editor store listener failed")

    def _persist(self, key: str, value: str) -> None:
        if self._storage is not None:
            self._storage.set(key, value)

    # -------------------- Preferences --------------------

    def set_theme(self, theme: str) -> None:
        if not is_known_theme(theme):
            logger.warning("unknown editor theme %r accepted as-is", theme)
        self._persist(THEME_KEY, theme)
        self._set(theme=theme)

    def set_language(self, language: str) -> None:
        # שמירת הטיוטה של השפה היוצאת לפני המעבר
        current_code = self._editor.get_value() if self._editor is not None else ""
        if current_code:
            self._persist(draft_key(self._state.language), current_code)

        self._persist(LANGUAGE_KEY, language)
        self._set(language=language, output="", error=None)

    def set_font_size(self, font_size: int) -> None:
        self._persist(FONT_SIZE_KEY, str(font_size))
        self._set(font_size=font_size)

    # -------------------- Editor --------------------

    def get_code(self) -> str:
        if self._editor is None:
            return ""
        return self._editor.get_value() or ""

    def attach_editor(self, editor: EditorHandle) -> None:
        if self._storage is not None:
            saved_code = self._storage.get(draft_key(self._state.language))
            if saved_code:
                editor.set_value(saved_code)
        self._editor = editor

    def get_execution_result(self) -> Optional[ExecutionResult]:
        return self._state.execution_result

    # -------------------- Run --------------------

    async def run(self) -> Optional[ExecutionResult]:
        """
        מריץ את תוכן העורך בשירות ההרצה.

        מחזיר את ExecutionResult, או None כשלא נשלחה בקשה (קוד ריק) או
        כשההרצה הוחלפה ע"י הרצה חדשה יותר (supersede). דגל is_running
        מתאפס בכל מסלול יציאה של ההרצה העדכנית.

        Raises:
            RunInProgressError: במדיניות reject, כשהרצה קודמת עדיין ממתינה.
        """
        # reject נבדק לפני כל שינוי state, כולל שגיאת קוד ריק
        if self._state.is_running and self._run_policy == "reject":
            raise RunInProgressError("a run is already in progress")

        language = self._state.language
        code = self.get_code()
        if not code:
            self._set(error=EMPTY_CODE_ERROR)
            return None

        self._generation += 1
        token = self._generation
        previous = self._pending
        if previous is not None and not previous.done():
            previous.cancel()

        self._set(is_running=True, error=None, output="")
        task = asyncio.ensure_future(self._client.execute(language, code))
        self._pending = task

        result: Optional[ExecutionResult] = None
        try:
            outcome = await task
            if token != self._generation:
                logger.info("dropping result of superseded run")
                return None
            result = self._apply_outcome(code, outcome)
        except asyncio.CancelledError:
            if token == self._generation:
                raise
            logger.info("run superseded by a newer run")
            return None
        except Exception as exc:
            if token != self._generation:
                return None
            emit_event(
                "code_run_failed",
                severity="error",
                operation="run",
                language=language,
                error_signature=type(exc).__name__,
                error=str(exc),
            )
            result = ExecutionResult(code=code, output="", error=GENERIC_RUN_ERROR)
            self._set(error=GENERIC_RUN_ERROR, execution_result=result)
        finally:
            if token == self._generation:
                self._pending = None
                self._set(is_running=False)

        self._record(language, result)
        return result

    def _apply_outcome(self, code: str, outcome: ExecutionOutcome) -> ExecutionResult:
        if isinstance(outcome, RunSuccess):
            output = outcome.output
            result = ExecutionResult(code=code, output=output, error=None)
            self._set(output=output, error=None, execution_result=result)
            return result

        error = outcome.error
        result = ExecutionResult(code=code, output="", error=error)
        self._set(error=error, execution_result=result)
        return result

    def _record(self, language: str, result: ExecutionResult) -> None:
        if self._execution_log is None:
            return
        try:
            self._execution_log.record(language, result)
        except Exception as exc:
            emit_event(
                "execution_log_failed",
                severity="error",
                operation="record_execution",
                error=str(exc),
            )
