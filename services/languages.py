"""טבלת השפות הנתמכות ו-runtime מתאים בשירות ההרצה."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple


class UnsupportedLanguageError(KeyError):
    def __init__(self, language: str):
        super().__init__(language)
        self.language = language

    def __str__(self) -> str:
        return f"No runtime configured for language: {self.language!r}"


@dataclass(frozen=True)
class Runtime:
    language: str
    version: str


@dataclass(frozen=True)
class LanguageSpec:
    id: str
    label: str
    monaco_language: str
    runtime: Runtime


LANGUAGE_CONFIG: Dict[str, LanguageSpec] = {
    "javascript": LanguageSpec("javascript", "JavaScript", "javascript", Runtime("javascript", "18.15.0")),
    "typescript": LanguageSpec("typescript", "TypeScript", "typescript", Runtime("typescript", "5.0.3")),
    "python": LanguageSpec("python", "Python", "python", Runtime("python", "3.10.0")),
    "java": LanguageSpec("java", "Java", "java", Runtime("java", "15.0.2")),
    "go": LanguageSpec("go", "Go", "go", Runtime("go", "1.16.2")),
    "rust": LanguageSpec("rust", "Rust", "rust", Runtime("rust", "1.68.2")),
    "cpp": LanguageSpec("cpp", "C++", "cpp", Runtime("cpp", "10.2.0")),
    "csharp": LanguageSpec("csharp", "C#", "csharp", Runtime("csharp", "6.12.0")),
    "ruby": LanguageSpec("ruby", "Ruby", "ruby", Runtime("ruby", "3.0.1")),
    "swift": LanguageSpec("swift", "Swift", "swift", Runtime("swift", "5.3.3")),
}

# ערכות נושא מוכרות לעורך (לא נאכף; ערכה לא מוכרת פשוט לא תוצג כראוי)
THEMES: Tuple[str, ...] = (
    "vs-dark",
    "vs-light",
    "github-dark",
    "monokai",
    "solarized-dark",
)


def get_runtime(language: str) -> Runtime:
    spec = LANGUAGE_CONFIG.get(language)
    if spec is None:
        raise UnsupportedLanguageError(language)
    return spec.runtime


def is_known_theme(theme: str) -> bool:
    return theme in THEMES
