"""
Preferences Storage
===================
אחסון key/value מקומי להעדפות העורך ולטיוטות לפי שפה.

מפתחות:
    editor-language, editor-theme, editor-font-size, editor-code-<language>
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

logger = logging.getLogger(__name__)

LANGUAGE_KEY = "editor-language"
THEME_KEY = "editor-theme"
FONT_SIZE_KEY = "editor-font-size"
_DRAFT_PREFIX = "editor-code-"


def draft_key(language: str) -> str:
    return f"{_DRAFT_PREFIX}{language}"


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...


class MemoryStorage:
    """אחסון בזיכרון בלבד (טסטים, הרצה חד-פעמית)."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class JsonFileStorage:
    """
    אחסון בקובץ JSON יחיד. כל כתיבה נשמרת מיד לדיסק.

    הכתיבה נעשית לקובץ זמני באותה תיקייה ואז os.replace, כך שקובץ חלקי
    לא נשאר על הדיסק.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._data: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError:
            logger.warning("preferences file %s is not valid JSON; starting empty", self.path)
            return {}
        if not isinstance(raw, dict):
            logger.warning("preferences file %s does not hold an object; starting empty", self.path)
            return {}
        return {str(k): str(v) for k, v in raw.items() if v is not None}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".prefs-", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, ensure_ascii=False, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)
        self._flush()

    def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()
