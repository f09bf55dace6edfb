import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class User:
    """משתמש מזוהה ע"י ספק הזהות החיצוני."""
    user_id: str
    email: str
    name: str


@dataclass
class CodeExecution:
    """רשומת לוג להרצה אחת. נוספת בלבד, לא מתעדכנת."""
    user_id: str
    language: str
    code: str
    output: Optional[str] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.created_at is None:
            self.created_at = _now()


@dataclass
class Snippet:
    """קטע קוד משותף. ניתן לעריכה ולמחיקה ע"י הבעלים בלבד."""
    user_id: str
    title: str
    language: str
    code: str
    user_name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.title = (self.title or "").strip()
        self.language = (self.language or "").strip()
        self.code = self.code or ""
        if self.created_at is None:
            self.created_at = _now()
        if self.updated_at is None:
            self.updated_at = self.created_at


@dataclass
class SnippetComment:
    snippet_id: Any
    user_id: str
    user_name: str
    content: str
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.content = (self.content or "").strip()
        if self.created_at is None:
            self.created_at = _now()


@dataclass
class Star:
    snippet_id: Any
    user_id: str
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.created_at is None:
            self.created_at = _now()
