from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, IndexModel

from observability import emit_event

logger = logging.getLogger(__name__)

USERS = "users"
CODE_EXECUTIONS = "code_executions"
SNIPPETS = "snippets"
SNIPPET_COMMENTS = "snippet_comments"
STARS = "stars"

USER_SCHEMA = {
    "_id": ObjectId,
    "user_id": str,  # external identity id
    "email": str,
    "name": str,
}

CODE_EXECUTION_SCHEMA = {
    "_id": ObjectId,
    "user_id": str,
    "language": str,
    "code": str,
    "output": Optional[str],
    "error": Optional[str],
    "created_at": datetime,
}

SNIPPET_SCHEMA = {
    "_id": ObjectId,
    "user_id": str,
    "title": str,
    "language": str,
    "code": str,
    "user_name": str,  # owner display name, copied at creation
    "created_at": datetime,
    "updated_at": datetime,
}

SNIPPET_COMMENT_SCHEMA = {
    "_id": ObjectId,
    "snippet_id": ObjectId,  # reference to snippets._id
    "user_id": str,
    "user_name": str,
    "content": str,
    "created_at": datetime,
}

STAR_SCHEMA = {
    "_id": ObjectId,
    "snippet_id": ObjectId,
    "user_id": str,
    "created_at": datetime,
}


@dataclass(frozen=True)
class CollectionSpec:
    name: str
    schema: Dict[str, Any]
    indexes: Tuple[Tuple[str, List[Tuple[str, int]], bool], ...]

    def index_models(self) -> List[IndexModel]:
        return [IndexModel(keys, name=name, unique=unique) for name, keys, unique in self.indexes]


COLLECTIONS: Tuple[CollectionSpec, ...] = (
    CollectionSpec(USERS, USER_SCHEMA, (
        ("by_user_id", [("user_id", ASCENDING)], True),
    )),
    CollectionSpec(CODE_EXECUTIONS, CODE_EXECUTION_SCHEMA, (
        ("by_user_id", [("user_id", ASCENDING), ("created_at", DESCENDING)], False),
    )),
    CollectionSpec(SNIPPETS, SNIPPET_SCHEMA, (
        ("by_user_id", [("user_id", ASCENDING)], False),
    )),
    CollectionSpec(SNIPPET_COMMENTS, SNIPPET_COMMENT_SCHEMA, (
        ("by_snippet_id", [("snippet_id", ASCENDING), ("created_at", DESCENDING)], False),
    )),
    CollectionSpec(STARS, STAR_SCHEMA, (
        ("by_snippet_id", [("snippet_id", ASCENDING)], False),
        ("by_user_id", [("user_id", ASCENDING)], False),
        ("by_user_id_and_snippet_id", [("user_id", ASCENDING), ("snippet_id", ASCENDING)], True),
    )),
)


def ensure_indexes(db) -> Dict[str, bool]:
    """יוצר את כל האינדקסים. כשל באוסף אחד לא עוצר את השאר."""
    results: Dict[str, bool] = {}
    for spec in COLLECTIONS:
        try:
            db[spec.name].create_indexes(spec.index_models())
            results[spec.name] = True
        except Exception as e:
            results[spec.name] = False
            emit_event("db_create_indexes_error", severity="error", collection=spec.name, error=str(e))
    return results
