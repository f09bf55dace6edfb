from __future__ import annotations

from typing import Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    DotEnvSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


RUN_POLICIES = ("supersede", "reject")


class EditorConfig(BaseSettings):
    """
    קונפיגורציה של העורך ושל שירות ההרצה, מבוססת Pydantic Settings.

    - קורא אוטומטית משתני סביבה ו-`.env`.
    - כל השדות אופציונליים: העורך עובד גם ללא מסד נתונים.
    """

    # שירות הרצת קוד חיצוני (Piston)
    EXECUTION_API_URL: str = Field(
        default="https://emkc.org/api/v2/piston/execute",
        description="Remote execution endpoint (POST)",
    )
    RUN_CONCURRENCY_POLICY: str = Field(
        default="supersede",
        description="What a second run() does while one is pending: supersede or reject",
    )

    # HTTP client pooling/timeouts (aiohttp)
    AIOHTTP_POOL_LIMIT: int = Field(
        default=50,
        ge=1,
        le=10_000,
        description="Default TCPConnector limit for aiohttp client sessions",
    )
    AIOHTTP_TIMEOUT_TOTAL: int = Field(
        default=10,
        ge=1,
        le=300,
        description="Default total timeout (seconds) for aiohttp client sessions",
    )

    # ברירות מחדל של העורך
    DEFAULT_LANGUAGE: str = Field(default="javascript", description="Initial editor language")
    DEFAULT_THEME: str = Field(default="vs-dark", description="Initial editor theme")
    DEFAULT_FONT_SIZE: int = Field(default=14, ge=1, description="Initial editor font size")
    PREFERENCES_PATH: Optional[str] = Field(
        default=None,
        description="JSON file holding editor preferences and drafts; unset = in-memory only",
    )

    # מסד נתונים
    MONGODB_URL: Optional[str] = Field(default=None, description="MongoDB connection string")
    DATABASE_NAME: str = Field(default="code_craft", description="MongoDB database name")

    # Observability
    LOG_LEVEL: str = Field(default="INFO", description="Minimum log level")
    SENTRY_DSN: Optional[str] = Field(default=None, description="Sentry DSN for error reporting")
    ENVIRONMENT: str = Field(default="production", description="Deployment environment name")

    # הגדרות קריאה מ-.env ומשתני סביבה
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """אפשר שרשרת קבצי .env: קודם .env.local ואז .env, בנוסף למשתני סביבה."""
        return (
            init_settings,
            env_settings,
            DotEnvSettingsSource(settings_cls, env_file=".env.local", case_sensitive=True),
            DotEnvSettingsSource(settings_cls, env_file=".env", case_sensitive=True),
            file_secret_settings,
        )

    @field_validator("RUN_CONCURRENCY_POLICY")
    @classmethod
    def _validate_run_policy(cls, v: str) -> str:
        policy = str(v or "").strip().lower()
        if policy not in RUN_POLICIES:
            raise ValueError(
                f"RUN_CONCURRENCY_POLICY must be one of: {', '.join(RUN_POLICIES)}"
            )
        return policy

    @field_validator("EXECUTION_API_URL")
    @classmethod
    def _validate_execution_url(cls, v: str) -> str:
        if not v or not v.startswith(("http://", "https://")):
            raise ValueError("EXECUTION_API_URL must start with http:// or https://")
        return v

    @field_validator("MONGODB_URL")
    @classmethod
    def _validate_mongodb_url(cls, v: Optional[str]) -> Optional[str]:
        if v in (None, ""):
            return None
        if not v.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError(
                "MONGODB_URL must start with mongodb:// or mongodb+srv://"
            )
        return v


def load_config() -> EditorConfig:
    """טוען את הקונפיגורציה ומחזיר מופע של EditorConfig."""
    return EditorConfig()


# אינסטנס גלובלי של הקונפיגורציה בזמן import
try:
    config = load_config()
except ValidationError as exc:
    raise ValueError(str(exc)) from exc
