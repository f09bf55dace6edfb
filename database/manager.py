import logging
import os
from datetime import timezone
from types import SimpleNamespace
from typing import Any, Dict, Optional

from pymongo import MongoClient

from config import EditorConfig, config as default_config
from observability import emit_event

from .schemas import ensure_indexes

logger = logging.getLogger(__name__)


class NoOpCollection:
    """מימוש מינימלי שתואם את PyMongo לריצה ללא מסד נתונים."""

    def insert_one(self, *args: Any, **kwargs: Any) -> Any:
        return SimpleNamespace(inserted_id=None)

    def update_one(self, *args: Any, **kwargs: Any) -> Any:
        return SimpleNamespace(acknowledged=True, matched_count=0, modified_count=0, upserted_id=None)

    def delete_one(self, *args: Any, **kwargs: Any) -> Any:
        return SimpleNamespace(deleted_count=0)

    def delete_many(self, *args: Any, **kwargs: Any) -> Any:
        return SimpleNamespace(deleted_count=0)

    def find_one(self, *args: Any, **kwargs: Any) -> Any:
        return None

    def find(self, *args: Any, **kwargs: Any) -> Any:
        return []

    def count_documents(self, *args: Any, **kwargs: Any) -> int:
        return 0

    def create_indexes(self, *args: Any, **kwargs: Any) -> Any:
        return None


class NoOpDB:
    def __init__(self) -> None:
        self._collections: Dict[str, NoOpCollection] = {}

    def __getitem__(self, name: str) -> NoOpCollection:
        if name not in self._collections:
            self._collections[name] = NoOpCollection()
        return self._collections[name]

    def __getattr__(self, name: str) -> NoOpCollection:
        if name.startswith("_"):
            raise AttributeError(name)
        return self.__getitem__(name)

    @property
    def name(self) -> str:
        return "noop_db"


class DatabaseManager:
    """אחראי על חיבור MongoDB והגדרת אינדקסים."""

    client: Optional[MongoClient]

    def __init__(self, settings: Optional[EditorConfig] = None, *, connect: bool = True):
        self._settings = settings or default_config
        self.client = None
        self.db: Any = NoOpDB()
        self.index_results: Dict[str, bool] = {}
        if connect:
            self.connect()

    @property
    def is_noop(self) -> bool:
        return isinstance(self.db, NoOpDB)

    def connect(self) -> None:
        disable_db = str(os.getenv("DISABLE_DB", "")).lower() in {"1", "true", "yes"}
        if disable_db or not self._settings.MONGODB_URL:
            self.db = NoOpDB()
            emit_event("db_disabled", reason=("disabled_by_env" if disable_db else "missing_url"))
            return

        try:
            self.client = MongoClient(
                self._settings.MONGODB_URL,
                serverSelectionTimeoutMS=3000,
                connectTimeoutMS=10000,
                retryWrites=True,
                retryReads=True,
                tz_aware=True,
                tzinfo=timezone.utc,
            )
            self.db = self.client[self._settings.DATABASE_NAME]
            self.client.admin.command("ping")
            self.index_results = ensure_indexes(self.db)
            emit_event("db_connected", severity="info", database=self._settings.DATABASE_NAME)
        except Exception as e:
            emit_event("db_connection_failed", severity="error", error=str(e))
            raise

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None
