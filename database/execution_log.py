from typing import Any, Dict

from observability import emit_event

from .models import CodeExecution
from .repository import Repository


class ExecutionLog:
    """רושם כל תוצאת run() של העורך כרשומת CodeExecution עבור משתמש מחובר."""

    def __init__(self, repository: Repository, user_id: str):
        self.repository = repository
        self.user_id = user_id

    def record(self, language: str, result: Any) -> Dict[str, Any]:
        execution = CodeExecution(
            user_id=self.user_id,
            language=language,
            code=result.code,
            output=result.output or None,
            error=result.error,
        )
        saved = self.repository.save_execution(execution)
        if not saved.get("ok"):
            emit_event("execution_not_recorded", severity="warning", language=language)
        return saved
